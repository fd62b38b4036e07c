"""Pruebas del refresco de conversaciones y del indicador de respuesta."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from app.dashboard.freshness import ConversationFreshness

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ts(minutes: int) -> str:
    return (BASE_TIME + timedelta(minutes=minutes)).isoformat()


def _conversation(conv_id: str, *, updated: int, owner: str = "user-1") -> dict[str, object]:
    return {
        "id": conv_id,
        "title": f"Chat {conv_id}",
        "user_id": owner,
        "created_at": _ts(0),
        "updated_at": _ts(updated),
    }


def _message(msg_id: int, conv_id: str, sender: str, minute: int) -> dict[str, object]:
    return {
        "id": msg_id,
        "conversation_id": conv_id,
        "sender_type": sender,
        "content": f"mensaje {msg_id}",
        "created_at": _ts(minute),
    }


async def test_refresh_derives_response_flags(gateway) -> None:
    gateway.tables["conversations"] = [
        _conversation("34600000001", updated=5),
        _conversation("34600000002", updated=9),
        _conversation("34600000003", updated=7, owner="otro"),
    ]
    gateway.tables["messages"] = [
        _message(1, "34600000001", "user", 1),
        _message(2, "34600000001", "assistant", 3),
    ]
    freshness = ConversationFreshness(gateway)

    applied = await freshness.refresh()

    assert applied
    by_id = {conv.id: conv for conv in freshness.conversations}
    assert [conv.id for conv in freshness.conversations] == ["34600000002", "34600000001"]
    answered = by_id["34600000001"]
    assert answered.has_response is True
    assert answered.last_message_time == answered.updated_at.replace(minute=3)
    empty = by_id["34600000002"]
    assert empty.has_response is False
    assert empty.last_message_time == empty.updated_at
    assert not freshness.loading


async def test_latest_user_message_means_no_response(gateway) -> None:
    gateway.tables["conversations"] = [_conversation("346", updated=10)]
    gateway.tables["messages"] = [
        _message(1, "346", "assistant", 1),
        _message(2, "346", "user", 4),
    ]
    freshness = ConversationFreshness(gateway)

    await freshness.refresh()

    assert freshness.conversations[0].has_response is False


async def test_refresh_replaces_whole_list(gateway) -> None:
    gateway.tables["conversations"] = [_conversation("a", updated=1), _conversation("b", updated=2)]
    freshness = ConversationFreshness(gateway)
    await freshness.refresh()

    gateway.tables["conversations"] = [_conversation("c", updated=3)]
    await freshness.refresh()

    assert [conv.id for conv in freshness.conversations] == ["c"]


async def test_failed_refresh_keeps_previous_list(gateway) -> None:
    gateway.tables["conversations"] = [_conversation("a", updated=1)]
    freshness = ConversationFreshness(gateway)
    await freshness.refresh()
    previous = freshness.conversations

    gateway.fail_tables.add("messages")
    applied = await freshness.refresh()

    assert not applied
    assert freshness.conversations is previous
    assert freshness.error == "fallo simulado en messages"
    assert not freshness.loading


async def test_older_refresh_finishing_late_is_discarded(gateway) -> None:
    gateway.tables["conversations"] = [_conversation("viejo", updated=1)]
    release = asyncio.Event()
    held = asyncio.Event()

    async def hold_first(table: str, filters: dict[str, str]) -> None:
        if table == "conversations" and not held.is_set():
            held.set()
            await release.wait()

    gateway.query_hook = hold_first
    freshness = ConversationFreshness(gateway)

    slow = asyncio.create_task(freshness.refresh())
    await held.wait()
    gateway.tables["conversations"] = [_conversation("nuevo", updated=2)]
    fast_applied = await freshness.refresh()
    release.set()
    slow_applied = await slow

    assert fast_applied
    assert not slow_applied
    assert [conv.id for conv in freshness.conversations] == ["nuevo"]
    assert freshness.last_applied_sequence == 2
    assert not freshness.loading


async def test_one_lookup_per_conversation(gateway) -> None:
    gateway.tables["conversations"] = [
        _conversation(str(index), updated=index) for index in range(4)
    ]
    freshness = ConversationFreshness(gateway)

    await freshness.refresh()

    queries = gateway.gateway_calls("query")
    assert queries.count(("query", "conversations")) == 1
    assert queries.count(("query", "messages")) == 4


async def test_closed_tracker_ignores_results(gateway) -> None:
    gateway.tables["conversations"] = [_conversation("a", updated=1)]
    freshness = ConversationFreshness(gateway)
    freshness.close()

    applied = await freshness.refresh()

    assert not applied
    assert freshness.conversations == ()
