import logging

import pytest
from opensearchpy import OpenSearch
from opensearchpy.exceptions import ConnectionError as SearchConnectionError
from opensearchpy.exceptions import TransportError

from mail_indexer import search_index
from mail_indexer.errors import IndexInitError, SubmitError
from mail_indexer.search_index import (
    INDEX_SETTINGS,
    BulkSink,
    DirectSink,
    create_client,
    index_document,
    init_index,
)

logger = logging.getLogger("test")


class FakeIndices:
    def __init__(self, exists=False, fail=False):
        self._exists = exists
        self.fail = fail
        self.calls = []

    def exists(self, index):
        self.calls.append(("exists", index))
        return self._exists

    def delete(self, index):
        self.calls.append(("delete", index))

    def create(self, index, body):
        self.calls.append(("create", index))
        if self.fail:
            raise TransportError(400, "resource_already_exists_exception")
        return {"acknowledged": True, "index": index}


class FakeClient:
    def __init__(self, indices=None, fail_index=False):
        self.indices = indices or FakeIndices()
        self.fail_index = fail_index
        self.indexed = []

    def index(self, index, body, id=None):
        if self.fail_index:
            raise SearchConnectionError("N/A", "connection refused", None)
        self.indexed.append((index, id, body))
        return {"_id": id or "generated", "result": "created"}


def test_create_client():
    assert isinstance(create_client("http://127.0.0.1:9200", logger=logger), OpenSearch)


def test_mapping_covers_wire_keys():
    properties = INDEX_SETTINGS["mappings"]["properties"]
    assert {"id", "h", "pre", "epi", "t", "a"} <= set(properties)
    assert properties["h"]["properties"]["Date"]["format"] == "EEE, dd MMM yyyy HH:mm:ss Z"


def test_init_index_creates():
    client = FakeClient()
    result = init_index(client, "mail", logger)
    assert result["acknowledged"]
    assert client.indices.calls == [("create", "mail")]


def test_init_index_recreate_deletes_first():
    client = FakeClient(FakeIndices(exists=True))
    init_index(client, "mail", logger, recreate=True)
    assert client.indices.calls == [("exists", "mail"), ("delete", "mail"), ("create", "mail")]


def test_init_index_failure():
    with pytest.raises(IndexInitError):
        init_index(FakeClient(FakeIndices(fail=True)), "mail", logger)


def test_index_document_without_identifier():
    client = FakeClient()
    result = index_document(client, "mail", "", "{}")
    assert client.indexed == [("mail", None, "{}")]
    assert result["_id"] == "generated"


def test_index_document_failure():
    with pytest.raises(SubmitError):
        index_document(FakeClient(fail_index=True), "mail", "<1@x>", "{}")


def test_direct_sink():
    client = FakeClient()
    DirectSink(client, "mail", logger).add("<1@x>", '{"t": "x"}')
    assert client.indexed == [("mail", "<1@x>", '{"t": "x"}')]


def test_bulk_sink_batches(monkeypatch):
    batches = []

    def fake_bulk(client, actions, **kwargs):
        batches.append(list(actions))
        return len(actions), []

    monkeypatch.setattr(search_index.helpers, "bulk", fake_bulk)
    sink = BulkSink(FakeClient(), "mail", logger, bulk_actions=2)

    sink.add("<1@x>", "{}")
    sink.add("", "{}")
    assert len(batches) == 1
    sink.add("<3@x>", "{}")
    sink.close()

    assert [len(batch) for batch in batches] == [2, 1]
    assert batches[0][0] == {"_index": "mail", "_source": "{}", "_id": "<1@x>"}
    assert "_id" not in batches[0][1]
    assert sink.succeeded == 3
    assert sink.failed == 0


def test_bulk_sink_counts_rejections(monkeypatch):
    def fake_bulk(client, actions, **kwargs):
        return 1, [{"index": {"_id": "<2@x>", "status": 400}}]

    monkeypatch.setattr(search_index.helpers, "bulk", fake_bulk)
    sink = BulkSink(FakeClient(), "mail", logger)
    sink.add("<1@x>", "{}")
    sink.add("<2@x>", "{}")
    sink.flush()

    assert sink.succeeded == 1
    assert sink.failed == 1


def test_bulk_sink_request_failure(monkeypatch):
    def fake_bulk(client, actions, **kwargs):
        raise SearchConnectionError("N/A", "connection refused", None)

    monkeypatch.setattr(search_index.helpers, "bulk", fake_bulk)
    sink = BulkSink(FakeClient(), "mail", logger)
    sink.add("<1@x>", "{}")
    sink.flush()

    assert sink.failed == 1
    sink.flush()
    assert sink.failed == 1
