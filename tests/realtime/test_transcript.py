import itertools

import pytest

from planchat.errors import InvalidStatusTransition
from planchat.realtime.transcript import (
    EMPTY_TRANSCRIPT,
    ChatMessage,
    MessageStatus,
    add_local_message,
    apply_insert,
    mark_status,
    parse_timestamp,
    replace_history,
)


def _msg(id, content, ts, role="assistant"):
    return ChatMessage(id=id, role=role, content=content, timestamp=ts)


EVENTS = [
    _msg("1", "hello", "2024-05-01T10:00:00Z", role="user"),
    _msg("2", "hi there", "2024-05-01T10:00:10Z"),
    _msg("3", "what zoning applies?", "2024-05-01T10:01:00Z", role="user"),
    _msg("4", "General Residential Zone", "2024-05-01T10:01:30Z"),
]


def _apply_all(events, window=5.0):
    state = EMPTY_TRANSCRIPT
    for event in events:
        state = apply_insert(state, event, window)
    return state


def test_messages_sorted_by_timestamp():
    state = _apply_all(reversed(EVENTS))
    assert state.ids == ("1", "2", "3", "4")


def test_convergence_over_permutations_and_duplicates():
    expected = _apply_all(EVENTS).ids
    for permutation in itertools.permutations(EVENTS):
        assert _apply_all(permutation).ids == expected
        assert _apply_all(permutation + permutation[:2]).ids == expected


def test_same_id_applied_twice_is_noop():
    state = apply_insert(EMPTY_TRANSCRIPT, EVENTS[0])
    assert apply_insert(state, EVENTS[0]) is state


def test_dedup_guard_local_then_push():
    state, local = add_local_message(EMPTY_TRANSCRIPT, "what zoning applies?", timestamp="2024-05-01T10:01:00Z")
    pushed = _msg("server-1", "what zoning applies?", "2024-05-01T10:01:03Z", role="user")

    state = apply_insert(state, pushed, 5.0)

    assert len(state) == 1
    assert state.messages[0].id == local.id
    assert state.messages[0].status is MessageStatus.DELIVERED


def test_dedup_guard_outside_window_keeps_both():
    first = _msg("a", "same", "2024-05-01T10:00:00Z")
    second = _msg("b", "same", "2024-05-01T10:00:06Z")
    state = _apply_all([first, second])
    assert state.ids == ("a", "b")


def test_dedup_requires_same_role():
    first = _msg("a", "same", "2024-05-01T10:00:00Z", role="user")
    second = _msg("b", "same", "2024-05-01T10:00:01Z", role="assistant")
    assert len(_apply_all([first, second])) == 2


def test_equal_timestamps_keep_insertion_order():
    first = _msg("a", "one", "2024-05-01T10:00:00Z")
    second = _msg("b", "two", "2024-05-01T10:00:00Z")
    assert _apply_all([first, second]).ids == ("a", "b")


def test_replace_history_sorts_and_drops_repeated_ids():
    state = replace_history([EVENTS[2], EVENTS[0], EVENTS[0], EVENTS[1]])
    assert state.ids == ("1", "2", "3")


def test_add_local_message_is_provisional():
    state, message = add_local_message(EMPTY_TRANSCRIPT, "draft")
    assert message.provisional
    assert message.status is MessageStatus.SENDING
    assert message.id.startswith("local-")
    assert state.get(message.id) == message


def test_status_lifecycle():
    state, message = add_local_message(EMPTY_TRANSCRIPT, "draft")
    state = mark_status(state, message.id, MessageStatus.DELIVERED)
    state = mark_status(state, message.id, MessageStatus.READ)
    assert state.get(message.id).status is MessageStatus.READ

    with pytest.raises(InvalidStatusTransition):
        mark_status(state, message.id, MessageStatus.SENDING)


def test_sending_can_fail():
    state, message = add_local_message(EMPTY_TRANSCRIPT, "draft")
    state = mark_status(state, message.id, MessageStatus.FAILED)
    assert state.get(message.id).status is MessageStatus.FAILED


def test_mark_unknown_message_is_noop():
    assert mark_status(EMPTY_TRANSCRIPT, "missing", MessageStatus.READ) is EMPTY_TRANSCRIPT


def test_from_row():
    message = ChatMessage.from_row({
        "id": 5,
        "role": "assistant",
        "message": "answer",
        "created_at": "2024-05-01T10:00:00+00:00",
        "retrieval_metadata": {"chunks_retrieved": []},
    })
    assert message.id == "5"
    assert message.content == "answer"
    assert message.metadata == {"chunks_retrieved": []}
    assert message.status is MessageStatus.DELIVERED


def test_parse_timestamp():
    assert parse_timestamp("2024-05-01T10:00:00Z") == parse_timestamp("2024-05-01T10:00:00+00:00")
    assert parse_timestamp("2024-05-01T10:00:00") == parse_timestamp("2024-05-01T10:00:00Z")
    assert parse_timestamp("garbage") == 0.0
    assert parse_timestamp(None) == 0.0
