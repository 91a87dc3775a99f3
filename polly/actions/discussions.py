"""Discussion actions: commenting on a poll."""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData

from polly.errors import require_user
from polly.models.discussion_thread import DiscussionThread
from polly.models.user import User
from polly.schemas.discussion import DiscussionThreadNode
from polly.services.discussions import DiscussionService
from polly.services.polls import PollService
from polly.services.revalidation import poll_path, revalidate_path
from polly.validation import parse_thread_create, parse_thread_update


async def _revalidate_poll(db: AsyncSession, poll_id: int) -> None:
    share_token = await PollService(db).share_token_of(poll_id)
    if share_token:
        await revalidate_path(poll_path(share_token))


async def create_discussion_thread(
    db: AsyncSession, user: Optional[User], poll_id: int, form: FormData
) -> DiscussionThread:
    """Post a comment, or a reply when the form carries ``parentId``."""
    user = require_user(user)
    data = parse_thread_create(form)

    thread = await DiscussionService(db).create_thread(
        poll_id, user.id, data.content, parent_id=data.parent_id
    )
    await db.commit()

    await _revalidate_poll(db, poll_id)
    return thread


async def get_discussion_threads(db: AsyncSession, poll_id: int) -> List[DiscussionThreadNode]:
    return await DiscussionService(db).get_threads(poll_id)


async def get_discussion_thread_count(db: AsyncSession, poll_id: int) -> int:
    return await DiscussionService(db).get_thread_count(poll_id)


async def update_discussion_thread(
    db: AsyncSession, user: Optional[User], thread_id: int, form: FormData
) -> DiscussionThread:
    """Edit the caller's own comment, or flag it deleted."""
    user = require_user(user)
    data = parse_thread_update(form)

    thread = await DiscussionService(db).update_thread(
        thread_id, user.id, content=data.content, is_deleted=data.is_deleted
    )
    await db.commit()

    await _revalidate_poll(db, thread.poll_id)
    return thread


async def delete_discussion_thread(
    db: AsyncSession, user: Optional[User], thread_id: int
) -> DiscussionThread:
    user = require_user(user)

    thread = await DiscussionService(db).delete_thread(thread_id, user.id)
    await db.commit()

    await _revalidate_poll(db, thread.poll_id)
    return thread
