"""
Poll actions: what the create/edit/delete forms and the JSON API run.

Each action checks the caller, validates the submitted form, calls the
services, commits, and then revalidates the pages showing the poll.
"""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData

from polly.errors import require_user
from polly.models.poll import Poll
from polly.models.user import User
from polly.schemas.poll import UserPollSummary
from polly.services.polls import PollService
from polly.services.revalidation import DASHBOARD_PATH, poll_path, revalidate_path
from polly.validation import parse_poll_create, parse_poll_update


async def create_poll(db: AsyncSession, user: Optional[User], form: FormData) -> Poll:
    """Create a poll with its options. The caller goes on to ``/polls/<token>``."""
    user = require_user(user)
    data = parse_poll_create(form)

    poll = await PollService(db).create(user.id, data)
    await db.commit()

    await revalidate_path(DASHBOARD_PATH)
    return poll


async def update_poll(db: AsyncSession, user: Optional[User], poll_id: int, form: FormData) -> Poll:
    user = require_user(user)
    data = parse_poll_update(form)

    poll = await PollService(db).update(poll_id, user.id, data)
    await db.commit()

    await revalidate_path(DASHBOARD_PATH)
    await revalidate_path(poll_path(poll.share_token))
    return poll


async def set_poll_active(db: AsyncSession, user: Optional[User], poll_id: int, is_active: bool) -> Poll:
    """Open or close voting on the caller's poll."""
    user = require_user(user)

    poll = await PollService(db).set_active(poll_id, user.id, is_active)
    await db.commit()

    await revalidate_path(DASHBOARD_PATH)
    await revalidate_path(poll_path(poll.share_token))
    return poll


async def delete_poll(db: AsyncSession, user: Optional[User], poll_id: int) -> None:
    user = require_user(user)

    share_token = await PollService(db).delete(poll_id, user.id)
    await db.commit()

    await revalidate_path(DASHBOARD_PATH)
    await revalidate_path(poll_path(share_token))


async def get_user_polls(db: AsyncSession, user: Optional[User]) -> List[UserPollSummary]:
    user = require_user(user)
    return await PollService(db).find_by_user_id(user.id)
