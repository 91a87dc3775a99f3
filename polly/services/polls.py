"""Poll service: creating, reading, updating and deleting polls."""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from polly.config import settings
from polly.errors import AuthorizationDenied, NotFound, ValidationFailed
from polly.models.poll import MAX_OPTIONS, MIN_OPTIONS, Poll, as_utc
from polly.models.vote import Vote
from polly.schemas.poll import (
    OptionResult,
    PollCreate,
    PollOptionOut,
    PollOut,
    PollStats,
    PollUpdate,
    PollWithResults,
    UserPollSummary,
)
from polly.services.poll_options import PollOptionService
from polly.services.votes import VoteService

logger = logging.getLogger(__name__)


class PollService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.options = PollOptionService(session)
        self.votes = VoteService(session)

    async def _load(self, poll_id: int) -> Optional[Poll]:
        result = await self.session.execute(
            select(Poll)
            .options(selectinload(Poll.options))
            .where(Poll.id == poll_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # ── Create ──

    async def create(self, creator_id: int, data: PollCreate) -> Poll:
        """Insert the poll and its options in the caller's transaction."""
        if not MIN_OPTIONS <= len(data.options) <= MAX_OPTIONS:
            raise ValidationFailed(
                "options", f"A poll needs between {MIN_OPTIONS} and {MAX_OPTIONS} options"
            )

        poll = Poll(
            title=data.title,
            description=data.description,
            creator_id=creator_id,
            allow_multiple_votes=data.allow_multiple_votes,
            is_anonymous=data.is_anonymous,
            expires_at=data.expires_at,
        )
        self.session.add(poll)
        await self.session.flush()  # to get poll.id

        await self.options.create_many(poll.id, data.options)
        logger.info(f"Poll {poll.id} created by user {creator_id} with {len(data.options)} options")
        return await self._load(poll.id)

    # ── Read ──

    async def find_by_id(self, poll_id: int) -> Optional[Poll]:
        return await self._load(poll_id)

    async def find_id_by_share_token(self, share_token: str) -> Optional[int]:
        result = await self.session.execute(select(Poll.id).where(Poll.share_token == share_token))
        return result.scalar_one_or_none()

    async def share_token_of(self, poll_id: int) -> Optional[str]:
        result = await self.session.execute(select(Poll.share_token).where(Poll.id == poll_id))
        return result.scalar_one_or_none()

    async def find_by_share_token(self, share_token: str, viewer_id: Optional[int] = None) -> Optional[Poll]:
        """Active poll by token. Creators also see their own inactive polls."""
        visible = Poll.is_active.is_(True)
        if viewer_id:
            visible = or_(visible, Poll.creator_id == viewer_id)
        result = await self.session.execute(
            select(Poll)
            .options(selectinload(Poll.options))
            .where(Poll.share_token == share_token, visible)
        )
        return result.scalar_one_or_none()

    async def find_with_results(self, share_token: str) -> Optional[PollWithResults]:
        """Poll with per-option tallies, whatever state the poll is in."""
        result = await self.session.execute(
            select(Poll)
            .options(selectinload(Poll.options))
            .where(Poll.share_token == share_token)
        )
        poll = result.scalar_one_or_none()
        if poll is None:
            return None

        counts = await self.votes.get_vote_counts_by_option(poll.id)
        total = sum(counts.values())
        options = []
        for option in poll.options:
            vote_count = counts.get(option.id, 0)
            percentage = round(vote_count / total * 100, 1) if total else 0.0
            options.append(OptionResult(
                **PollOptionOut.model_validate(option).model_dump(),
                vote_count=vote_count,
                percentage=percentage,
            ))

        return PollWithResults(
            **PollOut.model_validate(poll).model_dump(),
            options=options,
            total_votes=total,
            status=poll.status().value,
            can_vote=poll.can_accept_votes(),
            share_url=settings.share_url(poll.share_token),
        )

    async def find_by_user_id(self, user_id: int) -> List[UserPollSummary]:
        """Dashboard rows for a creator, newest first."""
        result = await self.session.execute(
            select(Poll, func.count(Vote.id))
            .outerjoin(Vote, Vote.poll_id == Poll.id)
            .where(Poll.creator_id == user_id)
            .group_by(Poll.id)
            .order_by(Poll.created_at.desc(), Poll.id.desc())
        )
        return [
            UserPollSummary(
                id=poll.id,
                title=poll.title,
                created_at=as_utc(poll.created_at),
                expires_at=as_utc(poll.expires_at),
                is_active=poll.is_active,
                share_token=poll.share_token,
                total_votes=total_votes,
            )
            for poll, total_votes in result.all()
        ]

    async def get_recent_polls(self, limit: int = 10) -> List[Poll]:
        result = await self.session.execute(
            select(Poll)
            .options(selectinload(Poll.options))
            .where(Poll.is_active.is_(True))
            .order_by(Poll.created_at.desc(), Poll.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_stats(self, poll_id: int) -> PollStats:
        poll = await self.find_by_id(poll_id)
        if poll is None:
            raise NotFound("poll")
        result = await self.session.execute(
            select(Vote.created_at).where(Vote.poll_id == poll_id).order_by(Vote.created_at)
        )
        timestamps = [as_utc(created_at) for created_at in result.scalars().all()]
        return PollStats(
            poll=PollOut.model_validate(poll),
            total_votes=len(timestamps),
            votes_over_time=timestamps,
        )

    # ── Update ──

    async def update(self, poll_id: int, user_id: int, data: PollUpdate) -> Poll:
        """
        Apply the fields present in ``data``. Only the creator's own poll is
        touched; when nothing matches the caller is refused.
        """
        fields = data.poll_fields()
        if fields:
            result = await self.session.execute(
                update(Poll)
                .where(Poll.id == poll_id, Poll.creator_id == user_id)
                .values(**fields)
            )
            matched = result.rowcount
        else:
            result = await self.session.execute(
                select(Poll.id).where(Poll.id == poll_id, Poll.creator_id == user_id)
            )
            matched = 1 if result.scalar_one_or_none() is not None else 0

        if not matched:
            raise AuthorizationDenied("You can only edit your own polls")

        if data.options is not None:
            await self.options.update_many(poll_id, data.options)

        logger.info(f"Poll {poll_id} updated by user {user_id}: {sorted(data.model_fields_set)}")
        return await self._load(poll_id)

    async def set_active(self, poll_id: int, user_id: int, is_active: bool) -> Poll:
        return await self.update(poll_id, user_id, PollUpdate(is_active=is_active))

    # ── Delete ──

    async def delete(self, poll_id: int, user_id: int) -> str:
        """Delete the creator's poll; options, votes and threads go with it."""
        share_token = (await self.session.execute(
            select(Poll.share_token).where(Poll.id == poll_id, Poll.creator_id == user_id)
        )).scalar_one_or_none()

        result = await self.session.execute(
            delete(Poll).where(Poll.id == poll_id, Poll.creator_id == user_id)
        )
        if not result.rowcount:
            raise AuthorizationDenied("You can only delete your own polls")
        logger.info(f"Poll {poll_id} deleted by user {user_id}")
        return share_token
