import pytest
from pydantic import ValidationError as PydanticValidationError

from chat_toolkit.conversation_database.data_models.conversation import Conversation
from chat_toolkit.conversation_database.in_memory.conversation import InMemoryConversationDatabase


def make_conversation(
    conversation_id: str,
    owner_id: str = "owner-1",
    title: str = "Chat",
    created: int = 1_000,
    updated: int | None = None,
    is_active: bool = True,
) -> Conversation:
    return Conversation(
        id=conversation_id,
        owner_id=owner_id,
        title=title,
        model="claude-3-5-sonnet",
        create_timestamp=created,
        update_timestamp=created if updated is None else updated,
        is_active=is_active,
    )


def test_update_before_create_is_rejected():
    with pytest.raises(PydanticValidationError):
        make_conversation("c1", created=2_000, updated=1_000)


@pytest.mark.asyncio
async def test_create_and_get(conversation_db: InMemoryConversationDatabase):
    created = await conversation_db.create_conversation(make_conversation("c1"))

    assert await conversation_db.get_conversation_by_id("c1") == created
    assert await conversation_db.get_conversation_by_id("missing") is None


@pytest.mark.asyncio
async def test_create_duplicate_id_raises(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("c1"))

    with pytest.raises(ValueError):
        await conversation_db.create_conversation(make_conversation("c1"))


@pytest.mark.asyncio
async def test_returned_models_are_copies(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("c1", title="Original"))

    fetched = await conversation_db.get_conversation_by_id("c1")
    fetched.title = "Mutated"

    assert (await conversation_db.get_conversation_by_id("c1")).title == "Original"


@pytest.mark.asyncio
async def test_list_by_owner_most_recent_first(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("a", updated=5_000))
    await conversation_db.create_conversation(make_conversation("b", updated=9_000))
    await conversation_db.create_conversation(make_conversation("c", updated=5_000))
    await conversation_db.create_conversation(make_conversation("x", owner_id="owner-2", updated=99_000))

    listed = await conversation_db.get_conversations_by_owner_id("owner-1")

    # Equal update timestamps fall back to id, descending.
    assert [c.id for c in listed] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_list_active_only(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("active"))
    await conversation_db.create_conversation(make_conversation("archived", is_active=False))

    all_ids = {c.id for c in await conversation_db.get_conversations_by_owner_id("owner-1")}
    active_ids = [c.id for c in await conversation_db.get_conversations_by_owner_id("owner-1", active_only=True)]

    assert all_ids == {"active", "archived"}
    assert active_ids == ["active"]


@pytest.mark.asyncio
async def test_search_by_title(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("c1", title="Trip to Zurich"))
    await conversation_db.create_conversation(make_conversation("c2", title="zurich weather"))
    await conversation_db.create_conversation(make_conversation("c3", title="Groceries"))
    await conversation_db.create_conversation(make_conversation("c4", owner_id="owner-2", title="Zurich"))

    insensitive = await conversation_db.search_conversations_by_title("owner-1", "ZURICH")
    sensitive = await conversation_db.search_conversations_by_title("owner-1", "Zurich", case_insensitive=False)

    assert {c.id for c in insensitive} == {"c1", "c2"}
    assert [c.id for c in sensitive] == ["c1"]


@pytest.mark.asyncio
async def test_touch_moves_update_timestamp_forward(conversation_db: InMemoryConversationDatabase, clock):
    await conversation_db.create_conversation(make_conversation("c1", created=clock.now))
    clock.advance(500)

    touched = await conversation_db.touch_conversation("c1")

    assert touched.update_timestamp == clock.now
    assert touched.create_timestamp == clock.now - 500
    assert await conversation_db.touch_conversation("missing") is None


@pytest.mark.asyncio
async def test_touch_never_moves_backwards(conversation_db: InMemoryConversationDatabase, clock):
    await conversation_db.create_conversation(make_conversation("c1", created=clock.now, updated=clock.now + 10_000))

    touched = await conversation_db.touch_conversation("c1")

    assert touched.update_timestamp == clock.now + 10_000


@pytest.mark.asyncio
async def test_update_keeps_owner_and_creation_time(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("c1", created=1_000))

    updated = await conversation_db.update_conversation(
        make_conversation("c1", owner_id="intruder", title="Renamed", created=7_000, updated=8_000)
    )

    assert updated.title == "Renamed"
    assert updated.owner_id == "owner-1"
    assert updated.create_timestamp == 1_000
    assert updated.update_timestamp == 8_000
    assert await conversation_db.update_conversation(make_conversation("missing")) is None


@pytest.mark.asyncio
async def test_delete(conversation_db: InMemoryConversationDatabase):
    await conversation_db.create_conversation(make_conversation("c1"))

    assert await conversation_db.delete_conversation("c1") is True
    assert await conversation_db.delete_conversation("c1") is False
    assert await conversation_db.get_conversation_by_id("c1") is None
