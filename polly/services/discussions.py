"""
Discussion service: threaded comments on polls.

Comments are stored flat with a ``parent_id``; ``build_thread_tree`` nests
them for display. Deleted comments are only flagged, and disappear from
every read together with any replies below them.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from polly.errors import AuthorizationDenied, NotFound, ValidationFailed
from polly.models.discussion_thread import DiscussionThread
from polly.models.poll import Poll
from polly.models.user import User
from polly.schemas.discussion import DiscussionThreadNode, DiscussionThreadWithUser

logger = logging.getLogger(__name__)


def build_thread_tree(rows: Iterable[DiscussionThreadWithUser]) -> List[DiscussionThreadNode]:
    """
    Nest a flat, oldest-first list of comments.

    Every row becomes a node first, then each reply is attached to its
    parent's ``replies``. Replies whose parent is not in ``rows`` are left
    out of the result.
    """
    rows = list(rows)
    nodes: Dict[int, DiscussionThreadNode] = {}
    for row in rows:
        nodes[row.id] = DiscussionThreadNode(**row.model_dump(), replies=[], reply_count=0)

    roots = []
    for row in rows:
        node = nodes[row.id]
        if row.parent_id is None:
            roots.append(node)
            continue
        parent = nodes.get(row.parent_id)
        if parent is not None:
            parent.replies.append(node)
            parent.reply_count += 1
    return roots


class DiscussionService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _visible(self, thread_id: int) -> DiscussionThread:
        result = await self.session.execute(
            select(DiscussionThread).where(
                DiscussionThread.id == thread_id,
                DiscussionThread.is_deleted.is_(False),
            )
        )
        thread = result.scalar_one_or_none()
        if thread is None:
            raise NotFound("comment", "Comment not found")
        return thread

    async def create_thread(
        self, poll_id: int, user_id: int, content: str, parent_id: Optional[int] = None
    ) -> DiscussionThread:
        poll = await self.session.get(Poll, poll_id)
        if poll is None:
            raise NotFound("poll")

        if parent_id:
            try:
                parent = await self._visible(parent_id)
            except NotFound:
                raise NotFound("comment", "Parent comment not found") from None
            if parent.poll_id != poll_id:
                raise ValidationFailed("parent_id", "Parent comment does not belong to this poll")

        thread = DiscussionThread(
            poll_id=poll_id,
            parent_id=parent_id or None,
            user_id=user_id,
            content=content,
        )
        self.session.add(thread)
        await self.session.flush()
        logger.info(f"Comment {thread.id} added to poll {poll_id} by user {user_id}")
        return thread

    async def get_rows(self, poll_id: int) -> List[DiscussionThreadWithUser]:
        """Visible comments joined to their authors, oldest first."""
        result = await self.session.execute(
            select(DiscussionThread, User)
            .join(User, User.id == DiscussionThread.user_id)
            .where(
                DiscussionThread.poll_id == poll_id,
                DiscussionThread.is_deleted.is_(False),
            )
            .order_by(DiscussionThread.created_at, DiscussionThread.id)
        )
        return [
            DiscussionThreadWithUser(
                **DiscussionThreadWithUser.model_validate(thread).model_dump(
                    exclude={"user_name", "user_email", "user_avatar_url"}
                ),
                user_name=user.display_name,
                user_email=user.email,
                user_avatar_url=user.avatar_url,
            )
            for thread, user in result.all()
        ]

    async def get_threads(self, poll_id: int) -> List[DiscussionThreadNode]:
        return build_thread_tree(await self.get_rows(poll_id))

    async def update_thread(
        self,
        thread_id: int,
        user_id: int,
        content: Optional[str] = None,
        is_deleted: Optional[bool] = None,
    ) -> DiscussionThread:
        thread = await self._visible(thread_id)
        if thread.user_id != user_id:
            raise AuthorizationDenied("You can only edit your own comments")

        if content is not None:
            thread.content = content
        if is_deleted is not None:
            thread.is_deleted = is_deleted
        await self.session.flush()
        await self.session.refresh(thread)
        return thread

    async def delete_thread(self, thread_id: int, user_id: int) -> DiscussionThread:
        thread = await self.update_thread(thread_id, user_id, is_deleted=True)
        logger.info(f"Comment {thread_id} deleted by user {user_id}")
        return thread

    async def get_thread_count(self, poll_id: int) -> int:
        result = await self.session.execute(
            select(func.count(DiscussionThread.id)).where(
                DiscussionThread.poll_id == poll_id,
                DiscussionThread.is_deleted.is_(False),
            )
        )
        return result.scalar() or 0
