from urllib.parse import parse_qs, urlsplit

from sqlalchemy import func, select

from polly.models.poll import Poll
from polly.models.vote import Vote

from factories import auth_headers, make_poll


def redirect_of(resp):
    assert resp.status_code == 303
    url = urlsplit(resp.headers["location"])
    return url.path, {key: values[0] for key, values in parse_qs(url.query).items()}


async def test_create_redirects_to_share_page(client, session_maker, alice):
    resp = await client.post(
        "/polls/create",
        data={"title": "Tabs or spaces?", "options": ["Tabs", "Spaces"], "allowMultiple": "on"},
        headers=auth_headers(alice),
    )
    path, query = redirect_of(resp)

    async with session_maker() as fresh:
        poll = (await fresh.execute(select(Poll))).scalar_one()
    assert path == f"/polls/{poll.share_token}"
    assert query == {"success": "Poll created successfully"}
    assert poll.allow_multiple_votes is True


async def test_create_error_goes_back_to_form(client, session_maker, alice):
    resp = await client.post(
        "/polls/create",
        data={"title": "Lonely", "options": ["Only one"]},
        headers=auth_headers(alice),
    )
    path, query = redirect_of(resp)
    assert path == "/polls/create"
    assert query["error"] == "At least 2 options are required"

    async with session_maker() as fresh:
        assert await fresh.scalar(select(func.count(Poll.id))) == 0


async def test_create_while_signed_out(client):
    resp = await client.post("/polls/create", data={"title": "Hi", "options": ["A", "B"]})
    path, query = redirect_of(resp)
    assert path == "/polls/create"
    assert query["error"] == "Please sign in to continue"


async def test_vote_form_uses_poll_from_url(client, db, session_maker, alice, bob):
    poll = await make_poll(db, alice)
    resp = await client.post(
        f"/polls/{poll.share_token}/vote",
        data={"optionId": poll.options[1].id, "pollId": "9999"},
        headers=auth_headers(bob),
    )
    path, query = redirect_of(resp)
    assert path == f"/polls/{poll.share_token}"
    assert query == {"success": "Vote recorded"}

    resp = await client.post(
        f"/polls/{poll.share_token}/vote",
        data={"optionId": poll.options[0].id},
        headers=auth_headers(bob),
    )
    _, query = redirect_of(resp)
    assert query["error"] == "You have already voted in this poll"

    async with session_maker() as fresh:
        assert await fresh.scalar(select(func.count(Vote.id))) == 1


async def test_vote_on_unknown_poll(client):
    resp = await client.post("/polls/nope/vote", data={"optionId": "1"})
    path, query = redirect_of(resp)
    assert path == "/polls"
    assert query["error"] == "Poll not found"


async def test_edit_and_delete(client, db, session_maker, alice, bob):
    poll = await make_poll(db, alice)

    resp = await client.post(f"/polls/{poll.id}/edit", data={"title": "Retitled"}, headers=auth_headers(bob))
    path, query = redirect_of(resp)
    assert path == f"/polls/edit/{poll.id}"
    assert query["error"] == "You can only edit your own polls"

    resp = await client.post(f"/polls/{poll.id}/edit", data={"title": "Retitled"}, headers=auth_headers(alice))
    assert redirect_of(resp) == ("/dashboard", {"success": "Poll updated successfully"})

    resp = await client.post(f"/polls/{poll.id}/delete", headers=auth_headers(bob))
    assert redirect_of(resp)[1]["error"] == "You can only delete your own polls"

    resp = await client.post(f"/polls/{poll.id}/delete", headers=auth_headers(alice))
    assert redirect_of(resp) == ("/dashboard", {"success": "Poll deleted successfully"})

    async with session_maker() as fresh:
        assert await fresh.scalar(select(func.count(Poll.id))) == 0


async def test_comment_form(client, db, alice, bob):
    poll = await make_poll(db, alice)
    resp = await client.post(
        f"/polls/{poll.share_token}/discussions", data={"content": "  "}, headers=auth_headers(bob)
    )
    assert redirect_of(resp)[1]["error"] == "Comment content is required"

    resp = await client.post(
        f"/polls/{poll.share_token}/discussions", data={"content": "Great poll"}, headers=auth_headers(bob)
    )
    assert redirect_of(resp) == (f"/polls/{poll.share_token}", {"success": "Comment posted"})

    tree = (await client.get(f"/api/polls/{poll.id}/discussions")).json()["data"]
    assert [node["content"] for node in tree] == ["Great poll"]
