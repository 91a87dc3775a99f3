"""
Form-post router: the endpoints the poll pages submit to.

Each handler runs the matching action and answers ``303 See Other``: on
success to the page that shows the result, on failure back to the form with
``?error=<message>``.
"""

from typing import Optional
from urllib.parse import quote_plus

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData

from polly.actions import discussions as discussion_actions
from polly.actions import polls as poll_actions
from polly.actions import votes as vote_actions
from polly.database import get_db
from polly.errors import AppError, handle_server_error
from polly.models.user import User
from polly.routers.api import client_ip
from polly.routers.auth import get_current_user
from polly.services.polls import PollService

router = APIRouter(prefix="/polls", tags=["forms"])


def _redirect(url: str, **params: str) -> RedirectResponse:
    if params:
        query = "&".join(f"{key}={quote_plus(value)}" for key, value in params.items())
        url = f"{url}?{query}"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


async def _failed(db: AsyncSession, error: AppError, url: str) -> RedirectResponse:
    await db.rollback()
    handle_server_error(error)
    return _redirect(url, error=error.user_message)


def _with_poll_id(form: FormData, poll_id: int) -> FormData:
    """The poll comes from the URL; a ``pollId`` field on the form is ignored."""
    items = [(key, value) for key, value in form.multi_items() if key != "pollId"]
    items.append(("pollId", str(poll_id)))
    return FormData(items)


@router.post("/create")
async def create_poll(
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a poll and land on its share page."""
    try:
        poll = await poll_actions.create_poll(db, current_user, await request.form())
    except AppError as e:
        return await _failed(db, e, "/polls/create")
    return _redirect(f"/polls/{poll.share_token}", success="Poll created successfully")


@router.post("/{poll_id}/edit")
async def edit_poll(
    poll_id: int,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await poll_actions.update_poll(db, current_user, poll_id, await request.form())
    except AppError as e:
        return await _failed(db, e, f"/polls/edit/{poll_id}")
    return _redirect("/dashboard", success="Poll updated successfully")


@router.post("/{poll_id}/delete")
async def delete_poll(
    poll_id: int,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await poll_actions.delete_poll(db, current_user, poll_id)
    except AppError as e:
        return await _failed(db, e, "/dashboard")
    return _redirect("/dashboard", success="Poll deleted successfully")


@router.post("/{share_token}/vote")
async def vote(
    share_token: str,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cast the ballot submitted from the poll page."""
    back = f"/polls/{share_token}"
    poll_id = await PollService(db).find_id_by_share_token(share_token)
    if poll_id is None:
        return _redirect("/polls", error="Poll not found")

    form = _with_poll_id(await request.form(), poll_id)
    try:
        await vote_actions.submit_vote(db, current_user, client_ip(request), form)
    except AppError as e:
        return await _failed(db, e, back)
    return _redirect(back, success="Vote recorded")


@router.post("/{share_token}/discussions")
async def add_comment(
    share_token: str,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    back = f"/polls/{share_token}"
    poll_id = await PollService(db).find_id_by_share_token(share_token)
    if poll_id is None:
        return _redirect("/polls", error="Poll not found")

    try:
        await discussion_actions.create_discussion_thread(db, current_user, poll_id, await request.form())
    except AppError as e:
        return await _failed(db, e, back)
    return _redirect(back, success="Comment posted")
