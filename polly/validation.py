"""
Form payload parsing.

Browser forms post camelCase field names (``allowMultiple``, ``expiresAt``,
``pollId`` ...) and repeat ``options`` once per choice. The helpers here read
a Starlette ``FormData`` into the pydantic models and turn pydantic errors
into ``ValidationFailed`` naming the first offending field.
"""

from typing import Optional

from pydantic import ValidationError
from starlette.datastructures import FormData

from polly.errors import validation_failed
from polly.schemas.discussion import DiscussionThreadCreate, DiscussionThreadUpdate
from polly.schemas.poll import PollCreate, PollUpdate
from polly.schemas.vote import VoteCreate

TRUTHY = {"true", "on", "1", "yes"}

# form field -> model field
FIELD_NAMES = {
    "allowMultiple": "allow_multiple_votes",
    "isAnonymous": "is_anonymous",
    "isActive": "is_active",
    "expiresAt": "expires_at",
    "pollId": "poll_id",
    "optionId": "option_id",
    "parentId": "parent_id",
}
FORM_NAMES = {model: form for form, model in FIELD_NAMES.items()}


def form_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUTHY


def _build(model, payload: dict):
    try:
        return model(**payload)
    except ValidationError as exc:
        error = validation_failed(exc)
        error.field = FORM_NAMES.get(error.field, error.field)
        raise error from exc


def _text(form: FormData, key: str) -> Optional[str]:
    value = form.get(key)
    if value is None:
        return None
    return str(value)


def parse_poll_create(form: FormData) -> PollCreate:
    return _build(PollCreate, {
        "title": _text(form, "title"),
        "description": _text(form, "description"),
        "options": [str(option) for option in form.getlist("options")],
        "allow_multiple_votes": form_flag(_text(form, "allowMultiple")),
        "is_anonymous": form_flag(_text(form, "isAnonymous")),
        "expires_at": _text(form, "expiresAt") or None,
    })


def parse_poll_update(form: FormData) -> PollUpdate:
    """Only the fields present on the form end up in ``model_fields_set``."""
    payload = {}
    for key in ("title", "description"):
        if key in form:
            payload[key] = _text(form, key)
    options = form.getlist("options")
    if options:
        payload["options"] = [str(option) for option in options]
    for key in ("allowMultiple", "isAnonymous", "isActive"):
        if key in form:
            payload[FIELD_NAMES[key]] = form_flag(_text(form, key))
    if "expiresAt" in form:
        payload["expires_at"] = _text(form, "expiresAt") or None
    return _build(PollUpdate, payload)


def parse_vote(form: FormData) -> VoteCreate:
    return _build(VoteCreate, {
        "poll_id": _text(form, "pollId"),
        "option_id": _text(form, "optionId"),
    })


def parse_thread_create(form: FormData) -> DiscussionThreadCreate:
    return _build(DiscussionThreadCreate, {
        "content": _text(form, "content"),
        "parent_id": _text(form, "parentId") or None,
    })


def parse_thread_update(form: FormData) -> DiscussionThreadUpdate:
    payload = {}
    if "content" in form:
        payload["content"] = _text(form, "content")
    if "isDeleted" in form:
        payload["is_deleted"] = form_flag(_text(form, "isDeleted"))
    return _build(DiscussionThreadUpdate, payload)
