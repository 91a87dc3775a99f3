"""Poll option service: option rows of a poll and the 2–20 bounds on them."""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from polly.errors import NotFound, ValidationFailed
from polly.models.poll import MAX_OPTIONS, MIN_OPTIONS, Poll
from polly.models.poll_option import PollOption
from polly.models.vote import Vote
from polly.schemas.poll import OPTION_MAX_LENGTH

logger = logging.getLogger(__name__)

# A poll's order indexes are always 0..n-1 with n <= 20. Renumbering parks
# each row at offset + position first, clear of those slots and under the 100 cap.
_REORDER_OFFSET = 50


def _clean_text(text: str) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationFailed("options", "Option cannot be empty")
    if len(text) > OPTION_MAX_LENGTH:
        raise ValidationFailed("options", f"Option must be {OPTION_MAX_LENGTH} characters or less")
    return text


class PollOptionService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _lock_poll(self, poll_id: int) -> Poll:
        result = await self.session.execute(
            select(Poll).where(Poll.id == poll_id).with_for_update()
        )
        poll = result.scalar_one_or_none()
        if poll is None:
            raise NotFound("poll")
        return poll

    async def _count(self, poll_id: int) -> int:
        result = await self.session.execute(
            select(func.count(PollOption.id)).where(PollOption.poll_id == poll_id)
        )
        return result.scalar() or 0

    async def _next_index(self, poll_id: int) -> int:
        result = await self.session.execute(
            select(func.max(PollOption.order_index)).where(PollOption.poll_id == poll_id)
        )
        current = result.scalar()
        return 0 if current is None else current + 1

    # ── Create ──

    async def create(self, poll_id: int, text: str) -> PollOption:
        """Append one option; refused once the poll already holds the maximum."""
        await self._lock_poll(poll_id)
        if await self._count(poll_id) >= MAX_OPTIONS:
            raise ValidationFailed("options", f"Maximum {MAX_OPTIONS} options allowed")

        option = PollOption(poll_id=poll_id, text=_clean_text(text), order_index=await self._next_index(poll_id))
        self.session.add(option)
        await self.session.flush()
        return option

    async def create_many(self, poll_id: int, texts: Sequence[str]) -> List[PollOption]:
        """Append ``texts`` in order after the poll's existing options."""
        await self._lock_poll(poll_id)
        existing = await self._count(poll_id)
        if existing + len(texts) > MAX_OPTIONS:
            raise ValidationFailed("options", f"Maximum {MAX_OPTIONS} options allowed")

        start = await self._next_index(poll_id)
        options = [
            PollOption(poll_id=poll_id, text=_clean_text(text), order_index=start + i)
            for i, text in enumerate(texts)
        ]
        self.session.add_all(options)
        await self.session.flush()
        return options

    # ── Read ──

    async def find_by_poll_id(self, poll_id: int) -> List[PollOption]:
        result = await self.session.execute(
            select(PollOption)
            .where(PollOption.poll_id == poll_id)
            .order_by(PollOption.order_index)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_by_id(self, option_id: int) -> Optional[PollOption]:
        result = await self.session.execute(select(PollOption).where(PollOption.id == option_id))
        return result.scalar_one_or_none()

    async def get_option_with_vote_count(self, option_id: int) -> Tuple[PollOption, int]:
        option = await self.find_by_id(option_id)
        if option is None:
            raise NotFound("option", "Poll option not found")
        result = await self.session.execute(
            select(func.count(Vote.id)).where(Vote.option_id == option_id)
        )
        return option, result.scalar() or 0

    # ── Update ──

    async def update(self, option_id: int, text: str) -> PollOption:
        option = await self.find_by_id(option_id)
        if option is None:
            raise NotFound("option", "Poll option not found")
        option.text = _clean_text(text)
        await self.session.flush()
        return option

    async def update_many(self, poll_id: int, texts: Sequence[str]) -> List[PollOption]:
        """
        Replace the poll's option texts with ``texts``.

        Rows are matched by position: surviving positions keep their row (and
        so their votes) with the new text, extra texts are appended and
        trailing rows beyond ``len(texts)`` are removed with their votes.
        """
        if len(texts) < MIN_OPTIONS:
            raise ValidationFailed("options", f"At least {MIN_OPTIONS} options are required")
        if len(texts) > MAX_OPTIONS:
            raise ValidationFailed("options", f"Maximum {MAX_OPTIONS} options allowed")
        cleaned = [_clean_text(text) for text in texts]

        await self._lock_poll(poll_id)
        current = await self.find_by_poll_id(poll_id)

        for option, text in zip(current, cleaned):
            option.text = text
        for option in current[len(cleaned):]:
            await self.session.delete(option)

        next_index = current[-1].order_index + 1 if current else 0
        for offset, text in enumerate(cleaned[len(current):]):
            self.session.add(PollOption(poll_id=poll_id, text=text, order_index=next_index + offset))

        await self.session.flush()
        return await self.find_by_poll_id(poll_id)

    async def reorder_options(self, poll_id: int, option_ids: Sequence[int]) -> List[PollOption]:
        """Renumber the poll's options so they list in the order of ``option_ids``."""
        await self._lock_poll(poll_id)
        current = await self.find_by_poll_id(poll_id)
        if sorted(option_ids) != sorted(option.id for option in current):
            raise ValidationFailed("options", "Option ids must match the poll's options exactly")

        await self._renumber(option_ids)
        return await self.find_by_poll_id(poll_id)

    async def _renumber(self, option_ids: Sequence[int]) -> None:
        """Give each option its position in ``option_ids`` as order index."""
        # Two passes so no intermediate state collides on (poll_id, order_index)
        for index, option_id in enumerate(option_ids):
            await self.session.execute(
                update(PollOption)
                .where(PollOption.id == option_id)
                .values(order_index=_REORDER_OFFSET + index)
            )
        for index, option_id in enumerate(option_ids):
            await self.session.execute(
                update(PollOption).where(PollOption.id == option_id).values(order_index=index)
            )
        await self.session.flush()

    # ── Delete ──

    async def delete(self, option_id: int) -> None:
        """
        Remove one option; a poll never drops below the minimum. The options
        after it move up one place.
        """
        option = await self.find_by_id(option_id)
        if option is None:
            raise NotFound("option", "Poll option not found")
        await self._lock_poll(option.poll_id)
        if await self._count(option.poll_id) <= MIN_OPTIONS:
            raise ValidationFailed("options", f"At least {MIN_OPTIONS} options are required")
        poll_id = option.poll_id
        await self.session.delete(option)
        await self.session.flush()
        await self._renumber([remaining.id for remaining in await self.find_by_poll_id(poll_id)])

    async def delete_by_poll_id(self, poll_id: int) -> int:
        """
        Drop every option of a poll. Only for replacing the whole set: the
        caller must insert at least the minimum again before committing.
        """
        result = await self.session.execute(
            delete(PollOption).where(PollOption.poll_id == poll_id)
        )
        logger.info(f"Removed {result.rowcount} options from poll {poll_id}")
        return result.rowcount
