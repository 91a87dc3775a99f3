"""
JSON API router.

Every endpoint answers ``{"success": true, "data": ...}``; failures are
raised as ``AppError`` and rendered as ``{"success": false, "error": ...}``
by the handler registered in ``polly.main``. Write endpoints take the same
form fields as the HTML forms.

Endpoints:
    GET    /api/polls                         → caller's poll summaries
    POST   /api/polls                         → create a poll
    GET    /api/polls/recent                  → recent active polls
    GET    /api/polls/share/{token}           → poll with options
    GET    /api/polls/share/{token}/results   → poll with tallies and status
    POST   /api/polls/vote                    → cast a vote
    PUT    /api/polls/{id}                    → edit a poll
    PATCH  /api/polls/{id}/active             → open / close voting
    DELETE /api/polls/{id}                    → delete a poll
    GET    /api/polls/{id}/stats              → vote timeline
    DELETE /api/polls/{id}/vote               → withdraw own vote
    GET    /api/polls/{id}/discussions        → comment tree
    POST   /api/polls/{id}/discussions        → post a comment
    GET    /api/polls/{id}/discussions/count  → visible comment count
    PATCH  /api/discussions/{id}              → edit a comment
    DELETE /api/discussions/{id}              → soft-delete a comment
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from polly.actions import discussions as discussion_actions
from polly.actions import polls as poll_actions
from polly.actions import votes as vote_actions
from polly.database import get_db
from polly.errors import NotFound, ValidationFailed
from polly.models.user import User
from polly.routers.auth import current_user_required, get_current_user
from polly.schemas.discussion import DiscussionThreadOut
from polly.schemas.poll import PollWithOptions
from polly.schemas.vote import VoteOut
from polly.services.polls import PollService
from polly.validation import form_flag

router = APIRouter(prefix="/api", tags=["api"])


def ok(data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse({"success": True, "data": jsonable_encoder(data)}, status_code=status_code)


def client_ip(request: Request) -> Optional[str]:
    """Caller's address; behind a proxy this is the forwarded one."""
    return request.client.host if request.client else None


# ── Polls ──

@router.get("/polls")
async def list_my_polls(
    current_user: User = Depends(current_user_required),
    db: AsyncSession = Depends(get_db),
):
    return ok(await poll_actions.get_user_polls(db, current_user))


@router.post("/polls")
async def create_poll(
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    poll = await poll_actions.create_poll(db, current_user, await request.form())
    return ok(PollWithOptions.from_poll(poll), status.HTTP_201_CREATED)


@router.get("/polls/recent")
async def recent_polls(limit: int = 10, db: AsyncSession = Depends(get_db)):
    polls = await PollService(db).get_recent_polls(limit=max(1, min(limit, 50)))
    return ok([PollWithOptions.from_poll(poll) for poll in polls])


@router.get("/polls/share/{share_token}")
async def poll_by_share_token(
    share_token: str,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    poll = await PollService(db).find_by_share_token(
        share_token, viewer_id=current_user.id if current_user else None
    )
    if poll is None:
        raise NotFound("poll")
    return ok(PollWithOptions.from_poll(poll))


@router.get("/polls/share/{share_token}/results")
async def poll_results(share_token: str, db: AsyncSession = Depends(get_db)):
    results = await PollService(db).find_with_results(share_token)
    if results is None:
        raise NotFound("poll")
    return ok(results)


# ── Votes ──

@router.post("/polls/vote")
async def submit_vote(
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    vote = await vote_actions.submit_vote(db, current_user, client_ip(request), await request.form())
    return ok(VoteOut.model_validate(vote), status.HTTP_201_CREATED)


@router.delete("/polls/{poll_id}/vote")
async def revert_vote(
    poll_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    removed = await vote_actions.revert_vote(db, current_user, client_ip(request), poll_id)
    return ok({"removed": removed})


# ── Single poll ──

@router.put("/polls/{poll_id}")
async def update_poll(
    poll_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    poll = await poll_actions.update_poll(db, current_user, poll_id, await request.form())
    return ok(PollWithOptions.from_poll(poll))


@router.patch("/polls/{poll_id}/active")
async def set_poll_active(
    poll_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    form = await request.form()
    if "isActive" not in form:
        raise ValidationFailed("isActive", "isActive is required")
    poll = await poll_actions.set_poll_active(db, current_user, poll_id, form_flag(form.get("isActive")))
    return ok(PollWithOptions.from_poll(poll))


@router.delete("/polls/{poll_id}")
async def delete_poll(
    poll_id: int,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await poll_actions.delete_poll(db, current_user, poll_id)
    return ok({"id": poll_id})


@router.get("/polls/{poll_id}/stats")
async def poll_stats(poll_id: int, db: AsyncSession = Depends(get_db)):
    return ok(await PollService(db).get_stats(poll_id))


# ── Discussions ──

@router.get("/polls/{poll_id}/discussions")
async def list_discussions(poll_id: int, db: AsyncSession = Depends(get_db)):
    return ok(await discussion_actions.get_discussion_threads(db, poll_id))


@router.get("/polls/{poll_id}/discussions/count")
async def count_discussions(poll_id: int, db: AsyncSession = Depends(get_db)):
    return ok({"count": await discussion_actions.get_discussion_thread_count(db, poll_id)})


@router.post("/polls/{poll_id}/discussions")
async def create_discussion(
    poll_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    thread = await discussion_actions.create_discussion_thread(
        db, current_user, poll_id, await request.form()
    )
    return ok(DiscussionThreadOut.model_validate(thread), status.HTTP_201_CREATED)


@router.patch("/discussions/{thread_id}")
async def update_discussion(
    thread_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    thread = await discussion_actions.update_discussion_thread(
        db, current_user, thread_id, await request.form()
    )
    return ok(DiscussionThreadOut.model_validate(thread))


@router.delete("/discussions/{thread_id}")
async def delete_discussion(
    thread_id: int,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    thread = await discussion_actions.delete_discussion_thread(db, current_user, thread_id)
    return ok(DiscussionThreadOut.model_validate(thread))
