import pytest

from polly.errors import AuthorizationDenied, NotFound, ValidationFailed
from polly.services.discussions import DiscussionService

from factories import make_poll


async def test_threads_nested_with_author_metadata(db, alice, bob):
    poll = await make_poll(db, alice)
    service = DiscussionService(db)
    root = await service.create_thread(poll.id, alice.id, "Red, obviously")
    reply = await service.create_thread(poll.id, bob.id, "Blue!", parent_id=root.id)
    await service.create_thread(poll.id, alice.id, "Fair", parent_id=reply.id)
    await service.create_thread(poll.id, bob.id, "Second topic")
    await db.commit()

    tree = await service.get_threads(poll.id)

    assert [node.content for node in tree] == ["Red, obviously", "Second topic"]
    assert tree[0].user_name == "Alice Liddell"
    assert tree[0].reply_count == 1
    assert tree[0].replies[0].user_name == "bob"
    assert tree[0].replies[0].user_email == "bob@example.com"
    assert tree[0].replies[0].replies[0].content == "Fair"
    assert await service.get_thread_count(poll.id) == 4


async def test_reply_parent_must_exist_and_share_poll(db, alice, bob):
    poll = await make_poll(db, alice)
    other = await make_poll(db, alice, title="Other")
    service = DiscussionService(db)
    elsewhere = await service.create_thread(other.id, bob.id, "Elsewhere")

    with pytest.raises(NotFound) as info:
        await service.create_thread(poll.id, bob.id, "Orphan", parent_id=4242)
    assert info.value.user_message == "Parent comment not found"

    with pytest.raises(ValidationFailed) as info:
        await service.create_thread(poll.id, bob.id, "Cross-post", parent_id=elsewhere.id)
    assert info.value.field == "parent_id"


async def test_comment_on_unknown_poll(db, bob):
    with pytest.raises(NotFound):
        await DiscussionService(db).create_thread(4242, bob.id, "Hello?")


async def test_only_author_can_edit(db, alice, bob):
    poll = await make_poll(db, alice)
    service = DiscussionService(db)
    thread = await service.create_thread(poll.id, bob.id, "Typo here")

    edited = await service.update_thread(thread.id, bob.id, content="No typo")
    assert edited.content == "No typo"

    with pytest.raises(AuthorizationDenied):
        await service.update_thread(thread.id, alice.id, content="Mine now")


async def test_soft_delete_hides_thread_and_its_replies(db, alice, bob):
    poll = await make_poll(db, alice)
    service = DiscussionService(db)
    root = await service.create_thread(poll.id, alice.id, "Root")
    await service.create_thread(poll.id, bob.id, "Reply", parent_id=root.id)
    keep = await service.create_thread(poll.id, bob.id, "Unrelated")

    deleted = await service.delete_thread(root.id, alice.id)
    await db.commit()

    assert deleted.is_deleted is True
    tree = await service.get_threads(poll.id)
    assert [node.id for node in tree] == [keep.id]
    # The reply row is still visible, only its parent is gone
    assert await service.get_thread_count(poll.id) == 2

    with pytest.raises(NotFound):
        await service.update_thread(root.id, alice.id, content="Back")
    with pytest.raises(NotFound):
        await service.create_thread(poll.id, bob.id, "Late reply", parent_id=root.id)
