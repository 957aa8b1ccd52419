# ============================================================================
# mail_indexer/scheduler.py - Concurrent ingestion of message files
# ============================================================================

import logging
import os
import queue
import stat
import threading
import time
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Optional

from .context import PipelineContext
from .errors import ErrorHandler, TraversalError
from .interfaces import DocumentSink, EnvelopeParser
from .models import Document
from .serializer import DocumentSerializer
from .transformer import MessageTreeTransformer

_STOP = object()


@dataclass
class IngestionStats:
    enumerated: int = 0
    submitted: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)


class IngestionScheduler:
    """Drives parse -> transform -> serialize -> submit over input files."""

    def __init__(self, context: PipelineContext, parser: EnvelopeParser,
                 serializer: DocumentSerializer, workers: Optional[int] = None,
                 queue_size_per_worker: int = 2, shutdown_timeout: float = 30.0):
        self.context = context
        self.logger: logging.Logger = context.logger
        self.parser = parser
        self.serializer = serializer
        self.transformer = MessageTreeTransformer(context)
        self.error_handler = ErrorHandler(self.logger)
        self.workers = max(1, workers or os.cpu_count() or 1)
        self.queue_size = self.workers * max(1, queue_size_per_worker)
        self.shutdown_timeout = shutdown_timeout
        self._stats_lock = threading.Lock()

    # ------------------------------------------------------------------
    def process(self, data: bytes, source: str) -> Document:
        node = self.parser.parse(data, source)
        return self.transformer.transform(node, source)

    # ------------------------------------------------------------------
    def run_single(self, stream: BinaryIO, sink: DocumentSink, source: str = '<stdin>') -> Document:
        """Process one message synchronously; every failure is raised."""
        document = self.process(stream.read(), source)
        if not document.identifier:
            self.logger.warning(f"No Message-Id in {source}, the index will assign an id")
        sink.add(document.identifier, self.serializer.dumps(document))
        sink.flush()
        return document

    # ------------------------------------------------------------------
    def run_batch(self, paths: Iterable[str], sink: DocumentSink) -> IngestionStats:
        """
        Process every regular file under the given paths with a worker pool.

        Per-file failures are reported and counted. A traversal failure stops
        the run and is raised once the workers have shut down.
        """
        stats = IngestionStats()
        tasks: "queue.Queue[Any]" = queue.Queue(maxsize=self.queue_size)
        threads = [
            threading.Thread(
                target=self._worker,
                args=(tasks, sink, stats),
                name=f"ingest-worker-{i}",
                daemon=True,
            )
            for i in range(self.workers)
        ]
        for thread in threads:
            thread.start()
        self.logger.info(f"Started {len(threads)} ingestion workers")

        completed = False
        try:
            for path in self.iter_tasks(paths, stats):
                stats.enumerated += 1
                tasks.put(path)
            # Every enumerated task has been attempted once the counter drains
            tasks.join()
            completed = True
        finally:
            if not completed:
                self._discard_pending(tasks)
            self._shutdown(tasks, threads)

        self.logger.info(
            f"Done. {stats.enumerated} files, {stats.submitted} submitted, "
            f"{stats.failed} failed, {stats.skipped} skipped"
        )
        return stats

    # ------------------------------------------------------------------
    def iter_tasks(self, paths: Iterable[str], stats: Optional[IngestionStats] = None) -> Iterator[str]:
        """Yield regular files; directories are walked recursively."""
        for path in paths:
            mode = self._stat_mode(path)
            if stat.S_ISDIR(mode):
                yield from self._walk(path, stats)
            elif stat.S_ISREG(mode):
                yield path
            else:
                self._skip(path, stats)

    def _walk(self, top: str, stats: Optional[IngestionStats]) -> Iterator[str]:
        def fail(error: OSError) -> None:
            raise TraversalError(f"Could not walk {error.filename}: {error}") from error

        for root, dirs, files in os.walk(top, onerror=fail):
            dirs.sort()
            for name in sorted(files):
                path = os.path.join(root, name)
                if stat.S_ISREG(self._stat_mode(path)):
                    yield path
                else:
                    self._skip(path, stats)

    def _stat_mode(self, path: str) -> int:
        try:
            return os.stat(path).st_mode
        except OSError as e:
            raise TraversalError(f"Could not stat file {path}: {e}") from e

    def _skip(self, path: str, stats: Optional[IngestionStats]) -> None:
        self.logger.info(f"Not a file: {path}")
        if stats is not None:
            stats.skipped += 1

    # ------------------------------------------------------------------
    def _worker(self, tasks: "queue.Queue[Any]", sink: DocumentSink, stats: IngestionStats) -> None:
        while True:
            filename = tasks.get()
            try:
                if filename is _STOP:
                    return
                self._run_task(filename, sink, stats)
            finally:
                tasks.task_done()

    def _run_task(self, filename: str, sink: DocumentSink, stats: IngestionStats) -> None:
        try:
            with open(filename, 'rb') as f:
                data = f.read()
            document = self.process(data, filename)
            body = self.serializer.dumps(document)
            sink.add(document.identifier, body)
        except Exception as e:
            failure = self.error_handler.report(e, filename)
            with self._stats_lock:
                stats.failed += 1
                stats.failures.append(failure)
            return

        with self._stats_lock:
            stats.submitted += 1

    # ------------------------------------------------------------------
    def _discard_pending(self, tasks: "queue.Queue[Any]") -> None:
        while True:
            try:
                tasks.get_nowait()
            except queue.Empty:
                return
            tasks.task_done()

    def _shutdown(self, tasks: "queue.Queue[Any]", threads: List[threading.Thread]) -> None:
        """Close the queue with one stop marker per worker and join with a deadline."""
        for _ in threads:
            tasks.put(_STOP)

        deadline = time.monotonic() + self.shutdown_timeout
        for thread in threads:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))

        stuck = [thread.name for thread in threads if thread.is_alive()]
        if stuck:
            self.logger.warning(f"Workers still busy after {self.shutdown_timeout}s: {', '.join(stuck)}")
