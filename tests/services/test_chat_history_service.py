from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from planchat.services.chat_history_service import ChatHistoryService


def test_load_history_queries_session_in_order():
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.order.return_value
    query.execute.return_value = SimpleNamespace(data=[{"id": "1"}, {"id": "2"}])

    rows = ChatHistoryService(client=client).load_history("s1")

    assert [row["id"] for row in rows] == ["1", "2"]
    client.table.assert_called_with('chat_messages')
    client.table.return_value.select.return_value.eq.assert_called_with('session_id', 's1')
    client.table.return_value.select.return_value.eq.return_value.order.assert_called_with('created_at')


def test_empty_session_id_skips_query():
    client = MagicMock()
    assert ChatHistoryService(client=client).load_history("") == []
    client.table.assert_not_called()


def test_io_errors_propagate():
    client = MagicMock()
    client.table.side_effect = RuntimeError("db down")
    with pytest.raises(RuntimeError):
        ChatHistoryService(client=client).load_history("s1")
