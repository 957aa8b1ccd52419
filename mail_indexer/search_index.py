import logging
import threading
from typing import Any, Dict, List, Optional

from opensearchpy import OpenSearch, RequestsHttpConnection, helpers
from opensearchpy.exceptions import OpenSearchException

from .errors import ConfigurationError, IndexInitError, SubmitError
from .interfaces import DocumentSink


INDEX_SETTINGS: Dict[str, Any] = {
    "mappings": {
        "properties": {
            "h": {
                "properties": {
                    "Date": {"type": "date", "format": "EEE, dd MMM yyyy HH:mm:ss Z"},
                    "Subject": {"type": "text"},
                    "Message-Id": {"type": "keyword"},
                    "From": {"type": "keyword"},
                    "To": {"type": "keyword"},
                    "Cc": {"type": "keyword"},
                    "Bcc": {"type": "keyword"},
                    "Return-Path": {"type": "keyword"},
                    "Delivered-To": {"type": "keyword"},
                    "Dkim-Signature": {"type": "text", "index": False},
                    "X-Google-Dkim-Signature": {"type": "text", "index": False},
                }
            },
            "id": {"type": "keyword"},
            "pre": {"type": "binary"},
            "epi": {"type": "binary"},
            "a": {"type": "keyword"},
            "t": {"type": "text"},
        }
    }
}


def create_client(url: str, verify_certs: bool = True,
                  logger: Optional[logging.Logger] = None) -> OpenSearch:
    logger = logger or logging.getLogger(__name__)
    try:
        return OpenSearch(
            hosts=[url],
            http_compress=True,
            verify_certs=verify_certs,
            connection_class=RequestsHttpConnection,
        )
    except Exception as e:
        logger.error(f"Failed to create search client for {url}: {e}")
        raise ConfigurationError(str(e)) from e


def init_index(client: OpenSearch, index: str, logger: logging.Logger,
               recreate: bool = False) -> Dict[str, Any]:
    """Create the index with the mail mapping, optionally dropping an existing one."""
    try:
        if recreate and client.indices.exists(index=index):
            logger.warning(f"Deleting existing index '{index}'")
            client.indices.delete(index=index)
        result = client.indices.create(index=index, body=INDEX_SETTINGS)
    except OpenSearchException as e:
        raise IndexInitError(f"{index}: {e}") from e
    logger.info(f"Result: {result}")
    return result


def index_document(client: OpenSearch, index: str, identifier: str, body: str) -> Dict[str, Any]:
    """Index one document synchronously; an empty identifier lets the index assign one."""
    try:
        return client.index(index=index, body=body, id=identifier or None)
    except OpenSearchException as e:
        raise SubmitError(f"{identifier or '<no id>'}: {e}") from e


class DirectSink(DocumentSink):
    """Submits each document with its own request."""

    def __init__(self, client: OpenSearch, index: str, logger: logging.Logger):
        self.client = client
        self.index = index
        self.logger = logger

    def add(self, identifier: str, body: str) -> None:
        result = index_document(self.client, self.index, identifier, body)
        self.logger.info(f"Indexed {result.get('_id', identifier)} ({result.get('result')})")


class BulkSink(DocumentSink):
    """Buffers documents and sends them through the bulk API in batches."""

    def __init__(self, client: OpenSearch, index: str, logger: logging.Logger,
                 bulk_actions: int = 500):
        self.client = client
        self.index = index
        self.logger = logger
        self.bulk_actions = max(1, bulk_actions)
        self.succeeded = 0
        self.failed = 0
        self._buffer: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def add(self, identifier: str, body: str) -> None:
        action: Dict[str, Any] = {"_index": self.index, "_source": body}
        if identifier:
            action["_id"] = identifier

        with self._lock:
            self._buffer.append(action)
            batch = self._take_batch() if len(self._buffer) >= self.bulk_actions else None
        if batch:
            self._send(batch)

    def flush(self) -> None:
        with self._lock:
            batch = self._take_batch()
        if batch:
            self._send(batch)

    def _take_batch(self) -> List[Dict[str, Any]]:
        batch, self._buffer = self._buffer, []
        return batch

    def _send(self, batch: List[Dict[str, Any]]) -> None:
        self.logger.debug(f"Sending bulk request with {len(batch)} documents")
        try:
            success, errors = helpers.bulk(
                self.client, batch, raise_on_error=False, raise_on_exception=False
            )
        except OpenSearchException as e:
            self.logger.error(f"Bulk request of {len(batch)} documents failed: {e}")
            with self._lock:
                self.failed += len(batch)
            return

        for error in errors:
            self.logger.error(f"Bulk indexing error: {error}")
        with self._lock:
            self.succeeded += success
            self.failed += len(errors)
