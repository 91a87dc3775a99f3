"""
Vote service: casting, reverting and counting votes.

A voter's identity is their user id when one is recorded on the vote, else
the IP address it came from. Anonymous polls only ever record the IP.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from polly.errors import Conflict, NotFound, ValidationFailed
from polly.models.poll import Poll
from polly.models.poll_option import PollOption
from polly.models.vote import Vote
from polly.schemas.vote import UniqueVoters

logger = logging.getLogger(__name__)


def _identity(voter_id: Optional[int], voter_ip: Optional[str]):
    if voter_id:
        return Vote.voter_id == voter_id
    return (Vote.voter_id.is_(None)) & (Vote.voter_ip == voter_ip)


def _require_identity(voter_id: Optional[int], voter_ip: Optional[str]) -> None:
    if not voter_id and not voter_ip:
        raise ValidationFailed("voter", "A signed-in user or an IP address is required to vote")


class VoteService:
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

    @staticmethod
    def _check_open(poll: Poll) -> None:
        if not poll.is_active:
            raise Conflict("This poll is no longer active")
        if poll.is_expired():
            raise Conflict("This poll has expired")

    async def create(
        self,
        poll_id: int,
        option_id: int,
        voter_id: Optional[int] = None,
        voter_ip: Optional[str] = None,
    ) -> Vote:
        """
        Record one vote. The poll row stays locked until the surrounding
        transaction ends, so two ballots from one voter cannot both pass the
        duplicate check.
        """
        _require_identity(voter_id, voter_ip)
        poll = await self._lock_poll(poll_id)

        result = await self.session.execute(
            select(PollOption.id).where(PollOption.id == option_id, PollOption.poll_id == poll_id)
        )
        if result.scalar_one_or_none() is None:
            raise Conflict("Option does not belong to the specified poll")

        self._check_open(poll)

        if poll.is_anonymous:
            voter_id = None
            if not voter_ip:
                raise ValidationFailed("voter", "An IP address is required to vote in an anonymous poll")

        if not poll.allow_multiple_votes:
            previous = select(Vote.id).where(Vote.poll_id == poll_id, _identity(voter_id, voter_ip))
            if (await self.session.execute(previous.limit(1))).first() is not None:
                logger.info(f"Rejected duplicate vote on poll {poll_id}")
                raise Conflict("You have already voted in this poll")

        vote = Vote(poll_id=poll_id, option_id=option_id, voter_id=voter_id, voter_ip=voter_ip)
        self.session.add(vote)
        await self.session.flush()
        logger.info(f"Vote {vote.id} recorded on poll {poll_id} for option {option_id}")
        return vote

    async def find_by_poll_and_user(
        self, poll_id: int, voter_id: Optional[int] = None, voter_ip: Optional[str] = None
    ) -> List[Vote]:
        if not voter_id and not voter_ip:
            return []
        result = await self.session.execute(
            select(Vote)
            .where(Vote.poll_id == poll_id, _identity(voter_id, voter_ip))
            .order_by(Vote.created_at, Vote.id)
        )
        return list(result.scalars().all())

    async def has_user_voted(
        self, poll_id: int, voter_id: Optional[int] = None, voter_ip: Optional[str] = None
    ) -> bool:
        return bool(await self.find_by_poll_and_user(poll_id, voter_id, voter_ip))

    async def delete_by_poll_and_user(
        self, poll_id: int, voter_id: Optional[int] = None, voter_ip: Optional[str] = None
    ) -> int:
        """Withdraw the caller's votes while the poll still accepts votes."""
        _require_identity(voter_id, voter_ip)
        poll = await self._lock_poll(poll_id)
        self._check_open(poll)
        if poll.is_anonymous:
            voter_id = None

        result = await self.session.execute(
            delete(Vote).where(Vote.poll_id == poll_id, _identity(voter_id, voter_ip))
        )
        if not result.rowcount:
            raise NotFound("vote", "You have not voted in this poll")
        logger.info(f"Withdrew {result.rowcount} vote(s) from poll {poll_id}")
        return result.rowcount

    # ── Aggregates ──

    async def get_vote_counts_by_option(self, poll_id: int) -> Dict[int, int]:
        """Option id -> number of votes; options nobody picked are absent."""
        result = await self.session.execute(
            select(Vote.option_id, func.count(Vote.id))
            .where(Vote.poll_id == poll_id)
            .group_by(Vote.option_id)
        )
        return {option_id: count for option_id, count in result.all()}

    async def get_total_votes(self, poll_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Vote.id)).where(Vote.poll_id == poll_id)
        )
        return result.scalar() or 0

    async def get_unique_voters(self, poll_id: int) -> UniqueVoters:
        users = await self.session.execute(
            select(func.count(distinct(Vote.voter_id)))
            .where(Vote.poll_id == poll_id, Vote.voter_id.is_not(None))
        )
        anonymous = await self.session.execute(
            select(func.count(distinct(Vote.voter_ip)))
            .where(Vote.poll_id == poll_id, Vote.voter_id.is_(None))
        )
        return UniqueVoters(user_voters=users.scalar() or 0, anonymous_voters=anonymous.scalar() or 0)
