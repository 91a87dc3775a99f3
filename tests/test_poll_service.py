from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from polly.errors import AuthorizationDenied, NotFound, ValidationFailed
from polly.models.discussion_thread import DiscussionThread
from polly.models.poll import Poll, PollStatus
from polly.models.poll_option import PollOption
from polly.models.vote import Vote
from polly.schemas.poll import PollCreate, PollUpdate
from polly.services.discussions import DiscussionService
from polly.services.poll_options import PollOptionService
from polly.services.polls import PollService
from polly.services.votes import VoteService

from factories import make_expired_poll, make_poll, make_user


async def test_create_stores_poll_and_ordered_options(db, alice):
    poll = await make_poll(db, alice, options=("Red", "Green", "Blue"))

    assert poll.id
    assert poll.creator_id == alice.id
    assert poll.is_active is True
    assert len(poll.share_token) >= 20
    assert [(o.text, o.order_index) for o in poll.options] == [("Red", 0), ("Green", 1), ("Blue", 2)]


async def test_share_tokens_are_unique(db, alice):
    first = await make_poll(db, alice)
    second = await make_poll(db, alice)
    assert first.share_token != second.share_token


async def test_create_rejects_option_count_outside_bounds(db, alice):
    data = PollCreate.model_construct(title="Too few", options=["Only"], description=None,
                                      allow_multiple_votes=False, is_anonymous=False, expires_at=None)
    with pytest.raises(ValidationFailed) as info:
        await PollService(db).create(alice.id, data)
    assert info.value.field == "options"
    assert await db.scalar(select(func.count(Poll.id))) == 0


async def test_find_by_share_token_hides_inactive_polls_from_others(db, alice, bob):
    poll = await make_poll(db, alice)
    service = PollService(db)
    await service.set_active(poll.id, alice.id, False)
    await db.commit()

    assert await service.find_by_share_token(poll.share_token) is None
    assert await service.find_by_share_token(poll.share_token, viewer_id=bob.id) is None
    own = await service.find_by_share_token(poll.share_token, viewer_id=alice.id)
    assert own.id == poll.id
    assert [o.text for o in own.options] == ["Red", "Blue"]


async def test_find_by_share_token_unknown(db):
    assert await PollService(db).find_by_share_token("missing") is None
    assert await PollService(db).find_with_results("missing") is None


async def test_results_round_trip(db, alice, bob):
    poll = await make_poll(db, alice, title="Colour?", options=("Red", "Blue"))
    red, blue = poll.options
    votes = VoteService(db)
    await votes.create(poll.id, red.id, voter_id=alice.id)
    await votes.create(poll.id, red.id, voter_id=bob.id)
    await votes.create(poll.id, blue.id, voter_ip="198.51.100.1")
    await db.commit()

    results = await PollService(db).find_with_results(poll.share_token)

    assert results.title == "Colour?"
    assert [o.text for o in results.options] == ["Red", "Blue"]
    assert [o.vote_count for o in results.options] == [2, 1]
    assert [o.percentage for o in results.options] == [66.7, 33.3]
    assert results.total_votes == 3
    assert results.status == PollStatus.ACTIVE.value
    assert results.can_vote is True
    assert results.share_url.endswith(f"/polls/{poll.share_token}")


async def test_results_of_fresh_poll_are_zero(db, alice):
    poll = await make_poll(db, alice)
    results = await PollService(db).find_with_results(poll.share_token)
    assert results.total_votes == 0
    assert all(o.vote_count == 0 and o.percentage == 0.0 for o in results.options)


async def test_expired_poll_still_reports_results(db, alice):
    poll = await make_expired_poll(db, alice)
    results = await PollService(db).find_with_results(poll.share_token)
    assert results.status == PollStatus.EXPIRED.value
    assert results.can_vote is False
    assert [o.text for o in results.options] == ["Soup", "Salad"]


async def test_user_poll_summaries_newest_first_with_totals(db, alice, bob):
    older = await make_poll(db, alice, title="Older")
    newer = await make_poll(db, alice, title="Newer")
    await make_poll(db, bob, title="Not mine")
    await VoteService(db).create(older.id, older.options[0].id, voter_id=bob.id)
    await db.commit()

    summaries = await PollService(db).find_by_user_id(alice.id)

    assert [s.title for s in summaries] == ["Newer", "Older"]
    assert [s.total_votes for s in summaries] == [0, 1]
    assert summaries[0].share_token == newer.share_token


async def test_update_by_creator(db, alice):
    poll = await make_poll(db, alice)
    updated = await PollService(db).update(
        poll.id, alice.id, PollUpdate(title="Renamed", description="Pick one")
    )
    await db.commit()
    assert updated.title == "Renamed"
    assert updated.description == "Pick one"


async def test_update_by_other_user_is_denied(db, alice, bob):
    poll = await make_poll(db, alice)
    with pytest.raises(AuthorizationDenied):
        await PollService(db).update(poll.id, bob.id, PollUpdate(title="Hijacked"))
    with pytest.raises(AuthorizationDenied):
        await PollService(db).update(poll.id, bob.id, PollUpdate(options=["X", "Y"]))


async def test_update_options_keeps_votes_on_surviving_positions(db, alice, bob):
    poll = await make_poll(db, alice, options=("Red", "Blue", "Green"))
    red_id = poll.options[0].id
    await VoteService(db).create(poll.id, red_id, voter_id=bob.id)
    await VoteService(db).create(poll.id, poll.options[2].id, voter_ip="198.51.100.9")
    await db.commit()

    updated = await PollService(db).update(poll.id, alice.id, PollUpdate(options=["Crimson", "Navy"]))
    await db.commit()

    assert [(o.text, o.order_index) for o in updated.options] == [("Crimson", 0), ("Navy", 1)]
    assert updated.options[0].id == red_id
    counts = await VoteService(db).get_vote_counts_by_option(poll.id)
    assert counts == {red_id: 1}


async def test_update_options_can_grow(db, alice):
    poll = await make_poll(db, alice)
    updated = await PollService(db).update(poll.id, alice.id, PollUpdate(options=["Red", "Blue", "Green"]))
    assert [o.text for o in updated.options] == ["Red", "Blue", "Green"]


async def test_delete_by_creator_cascades(db, session_maker, alice, bob):
    poll = await make_poll(db, alice)
    await VoteService(db).create(poll.id, poll.options[0].id, voter_id=bob.id)
    await DiscussionService(db).create_thread(poll.id, bob.id, "Hmm")
    await db.commit()

    await PollService(db).delete(poll.id, alice.id)
    await db.commit()

    async with session_maker() as fresh:
        assert await fresh.get(Poll, poll.id) is None
        for model in (PollOption, Vote, DiscussionThread):
            assert await fresh.scalar(select(func.count(model.id))) == 0


async def test_delete_by_non_creator_is_denied_and_poll_survives(db, session_maker, alice, bob):
    poll = await make_poll(db, alice)
    poll_id = poll.id
    with pytest.raises(AuthorizationDenied) as info:
        await PollService(db).delete(poll_id, bob.id)
    assert info.value.user_message == "You can only delete your own polls"
    await db.rollback()

    async with session_maker() as fresh:
        assert await fresh.get(Poll, poll_id) is not None


async def test_recent_polls_only_active(db, alice):
    first = await make_poll(db, alice, title="First")
    second = await make_poll(db, alice, title="Second")
    await PollService(db).set_active(first.id, alice.id, False)
    await db.commit()

    recent = await PollService(db).get_recent_polls(limit=10)
    assert [p.id for p in recent] == [second.id]
    assert [o.text for o in recent[0].options] == ["Red", "Blue"]


async def test_stats(db, alice, bob):
    poll = await make_poll(db, alice)
    await VoteService(db).create(poll.id, poll.options[1].id, voter_id=bob.id)
    await db.commit()

    stats = await PollService(db).get_stats(poll.id)
    assert stats.poll.id == poll.id
    assert stats.total_votes == 1
    assert stats.votes_over_time[0].tzinfo is not None

    with pytest.raises(NotFound):
        await PollService(db).get_stats(9999)


async def test_status_rules(db, alice):
    now = datetime.now(timezone.utc)
    poll = Poll(title="t", creator_id=alice.id, is_active=True, expires_at=now + timedelta(hours=1))
    assert poll.status(now) is PollStatus.ACTIVE
    assert poll.status(now + timedelta(hours=2)) is PollStatus.EXPIRED
    poll.is_active = False
    assert poll.status(now) is PollStatus.CLOSED
    assert poll.can_accept_votes(now) is False


# ── Options ──

async def test_option_service_bounds(db, alice):
    poll = await make_poll(db, alice, options=[f"Option {i}" for i in range(20)])
    options = PollOptionService(db)

    with pytest.raises(ValidationFailed) as info:
        await options.create(poll.id, "One too many")
    assert info.value.field == "options"

    small = await make_poll(db, alice)
    with pytest.raises(ValidationFailed):
        await options.delete(small.options[0].id)


async def test_option_service_crud(db, alice):
    poll = await make_poll(db, alice)
    options = PollOptionService(db)

    added = await options.create(poll.id, "  Green ")
    assert (added.text, added.order_index) == ("Green", 2)

    renamed = await options.update(added.id, "Teal")
    assert renamed.text == "Teal"

    await options.delete(added.id)
    await db.commit()
    assert [o.text for o in await options.find_by_poll_id(poll.id)] == ["Red", "Blue"]
    assert await options.find_by_id(added.id) is None

    with pytest.raises(NotFound):
        await options.get_option_with_vote_count(added.id)


async def test_reorder_options(db, alice, bob):
    poll = await make_poll(db, alice, options=("A", "B", "C"))
    a, b, c = (o.id for o in poll.options)
    await VoteService(db).create(poll.id, c, voter_id=bob.id)
    options = PollOptionService(db)

    reordered = await options.reorder_options(poll.id, [c, a, b])
    await db.commit()

    assert [(o.id, o.order_index) for o in reordered] == [(c, 0), (a, 1), (b, 2)]
    option, votes = await options.get_option_with_vote_count(c)
    assert (option.text, votes) == ("C", 1)

    with pytest.raises(ValidationFailed):
        await options.reorder_options(poll.id, [a, b])


async def test_delete_closes_the_gap_in_order(db, alice):
    poll = await make_poll(db, alice, options=("A", "B", "C"))
    options = PollOptionService(db)

    await options.delete(poll.options[1].id)
    await db.commit()
    assert [(o.text, o.order_index) for o in await options.find_by_poll_id(poll.id)] == [("A", 0), ("C", 1)]


async def test_reorder_after_many_add_delete_cycles(db, alice):
    poll = await make_poll(db, alice)
    options = PollOptionService(db)
    for i in range(60):
        await options.create(poll.id, f"Extra {i}")
        oldest = (await options.find_by_poll_id(poll.id))[0]
        await options.delete(oldest.id)
    await db.commit()

    current = await options.find_by_poll_id(poll.id)
    assert [(o.text, o.order_index) for o in current] == [("Extra 58", 0), ("Extra 59", 1)]

    reordered = await options.reorder_options(poll.id, [current[1].id, current[0].id])
    assert [(o.text, o.order_index) for o in reordered] == [("Extra 59", 0), ("Extra 58", 1)]


async def test_delete_by_poll_id_then_replace(db, alice):
    poll = await make_poll(db, alice)
    options = PollOptionService(db)

    assert await options.delete_by_poll_id(poll.id) == 2
    await options.create_many(poll.id, ["Yes", "No"])
    await db.commit()
    assert [(o.text, o.order_index) for o in await options.find_by_poll_id(poll.id)] == [("Yes", 0), ("No", 1)]


async def test_option_for_unknown_poll(db):
    with pytest.raises(NotFound):
        await PollOptionService(db).create(4242, "Orphan")


async def test_other_users_cannot_see_each_others_summaries(db, alice):
    carol = await make_user(db, "carol@example.com", "Carol")
    await make_poll(db, alice)
    assert await PollService(db).find_by_user_id(carol.id) == []
