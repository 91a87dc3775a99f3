"""Vote actions: casting and withdrawing a ballot from the poll page."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData

from polly.models.user import User
from polly.models.vote import Vote
from polly.services.polls import PollService
from polly.services.revalidation import poll_path, revalidate_path
from polly.services.votes import VoteService
from polly.validation import parse_vote


async def submit_vote(
    db: AsyncSession, user: Optional[User], voter_ip: Optional[str], form: FormData
) -> Vote:
    """
    Record a vote from the vote form. Signing in is optional: anonymous
    visitors are told apart by ``voter_ip``.
    """
    data = parse_vote(form)

    vote = await VoteService(db).create(
        data.poll_id,
        data.option_id,
        voter_id=user.id if user else None,
        voter_ip=voter_ip,
    )
    share_token = await PollService(db).share_token_of(data.poll_id)
    await db.commit()

    await revalidate_path(poll_path(share_token))
    return vote


async def revert_vote(
    db: AsyncSession, user: Optional[User], voter_ip: Optional[str], poll_id: int
) -> int:
    """Withdraw the caller's votes on a poll that is still open."""
    removed = await VoteService(db).delete_by_poll_and_user(
        poll_id, voter_id=user.id if user else None, voter_ip=voter_ip
    )
    share_token = await PollService(db).share_token_of(poll_id)
    await db.commit()

    await revalidate_path(poll_path(share_token))
    return removed
