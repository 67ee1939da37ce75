"""Repositories over the in-memory key-value store."""
import pytest

from errors import UserNotFound
from models import LotteryResult, Platform, User
from storage import KeyValueStore, MemoryStore, OverrideRepository, ResultHistory, UserRepository, new_user_id


@pytest.fixture
def store():
    return MemoryStore()


async def test_memory_store_copies_values(store):
    value = {"shows": ["Hamilton"]}
    await store.set("k", value)
    value["shows"].append("Cats")

    fetched = await store.get("k")
    fetched["shows"].clear()

    assert await store.get("k") == {"shows": ["Hamilton"]}


async def test_list_by_prefix_and_delete(store):
    await store.set("user:a", {})
    await store.set("user:b", {})
    await store.set("override:a:x", {})
    await store.delete("user:b")

    assert await store.list_by_prefix("user:") == ["user:a"]


async def test_user_round_trip_and_lookup(store):
    users = UserRepository(store)
    user = User(id=new_user_id(), email="Fan@Example.com", first_name="Ada")
    await users.save(user)

    assert (await users.get(user.id)).first_name == "Ada"
    assert (await users.find_by_email("fan@example.com")).id == user.id
    assert await users.get("user-missing") is None
    with pytest.raises(UserNotFound):
        await users.require("user-missing")


async def test_override_key_format_and_last_write_wins(store):
    overrides = OverrideRepository(store)

    first = await overrides.set("user-1", Platform.SOCIAL_TOASTER, "Hadestown", True)
    second = await overrides.set("user-1", Platform.SOCIAL_TOASTER, "Hadestown", False)

    assert await store.list_by_prefix("override:") == ["override:user-1:socialtoaster:Hadestown"]
    assert (await overrides.get("user-1", Platform.SOCIAL_TOASTER, "Hadestown")).should_apply is False
    assert second.created_at == first.created_at


async def test_overrides_listed_per_user(store):
    overrides = OverrideRepository(store)
    await overrides.set("user-1", Platform.BROADWAY_DIRECT, "Hamilton", True)
    await overrides.set("user-1", Platform.SOCIAL_TOASTER, "Hadestown", False)
    await overrides.set("user-10", Platform.BROADWAY_DIRECT, "Cats", True)

    listed = await overrides.list_for_user("user-1")

    assert {o.show_name for o in listed} == {"Hamilton", "Hadestown"}


async def test_history_is_newest_first_and_capped(store):
    history = ResultHistory(store, limit=3)

    def result(name):
        return LotteryResult(success=True, show_name=name, platform=Platform.BROADWAY_DIRECT)

    await history.record("user-1", [result("Aladdin"), result("Wicked")])
    await history.record("user-1", [result("Hamilton"), result("Cats")])

    recent = await history.recent("user-1")
    assert [r.show_name for r in recent] == ["Cats", "Hamilton", "Wicked"]
    assert [r.show_name for r in await history.recent("user-1", limit=1)] == ["Cats"]

    await history.clear("user-1")
    assert await history.recent("user-1") == []


def test_incomplete_store_cannot_be_created():
    class ReadOnlyStore(KeyValueStore):
        async def get(self, key):
            return None

    with pytest.raises(TypeError):
        ReadOnlyStore()
