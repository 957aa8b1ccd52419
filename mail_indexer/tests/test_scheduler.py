import io
import json
import os
import threading

import pytest

from mail_indexer.errors import MessageParseError, SubmitError, TraversalError
from mail_indexer.interfaces import DocumentSink
from mail_indexer.parsers.eml_parser import EmlEnvelopeParser
from mail_indexer.scheduler import IngestionScheduler
from mail_indexer.serializer import DocumentSerializer


def _message(n):
    return (
        f"From: sender{n}@example.com\r\n"
        f"Subject: message {n}\r\n"
        f"Message-ID: <{n}@example.com>\r\n"
        "Content-Type: text/plain; charset=us-ascii\r\n"
        "\r\n"
        f"body {n}\r\n"
    ).encode("ascii")


class FakeSink(DocumentSink):
    def __init__(self, reject=None):
        self.documents = {}
        self.flushed = 0
        self.reject = reject
        self._lock = threading.Lock()

    def add(self, identifier, body):
        if identifier == self.reject:
            raise SubmitError(identifier)
        with self._lock:
            self.documents[identifier] = json.loads(body)

    def flush(self):
        self.flushed += 1


@pytest.fixture
def scheduler(context, logger):
    return IngestionScheduler(
        context, EmlEnvelopeParser(logger), DocumentSerializer(logger),
        workers=3, shutdown_timeout=5.0,
    )


@pytest.fixture
def mail_dir(tmp_path):
    root = tmp_path / "mail"
    (root / "a" / "b").mkdir(parents=True)
    (root / "one.eml").write_bytes(_message(1))
    (root / "a" / "two.eml").write_bytes(_message(2))
    (root / "a" / "b" / "three.eml").write_bytes(_message(3))
    (root / "a" / "empty.eml").write_bytes(b"")
    return root


def test_batch_counts_every_file(scheduler, mail_dir):
    sink = FakeSink()
    stats = scheduler.run_batch([str(mail_dir)], sink)

    assert stats.enumerated == 4
    assert stats.submitted == 3
    assert stats.failed == 1
    assert stats.failures[0]["source"].endswith("empty.eml")
    assert stats.failures[0]["code"] == "PARSING_ERROR"
    assert sorted(sink.documents) == ["<1@example.com>", "<2@example.com>", "<3@example.com>"]
    assert sink.documents["<2@example.com>"]["t"].startswith("body 2")


def test_submit_failure_is_isolated(scheduler, mail_dir):
    sink = FakeSink(reject="<2@example.com>")
    stats = scheduler.run_batch([str(mail_dir)], sink)

    assert stats.submitted == 2
    assert stats.failed == 2
    assert "<1@example.com>" in sink.documents
    assert {f["code"] for f in stats.failures} == {"PARSING_ERROR", "SUBMIT_ERROR"}


def test_single_file_argument(scheduler, mail_dir):
    sink = FakeSink()
    stats = scheduler.run_batch([str(mail_dir / "one.eml")], sink)
    assert stats.enumerated == 1
    assert list(sink.documents) == ["<1@example.com>"]


def test_missing_path_stops_the_run(scheduler, tmp_path):
    with pytest.raises(TraversalError):
        scheduler.run_batch([str(tmp_path / "missing")], FakeSink())


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="requires named pipes")
def test_special_files_are_skipped(scheduler, mail_dir):
    os.mkfifo(str(mail_dir / "pipe"))
    stats = scheduler.run_batch([str(mail_dir)], FakeSink())
    assert stats.skipped == 1
    assert stats.enumerated == 4


def test_iter_tasks_is_sorted(scheduler, mail_dir):
    names = [os.path.relpath(p, str(mail_dir)) for p in scheduler.iter_tasks([str(mail_dir)])]
    assert names == [
        "one.eml",
        os.path.join("a", "empty.eml"),
        os.path.join("a", "two.eml"),
        os.path.join("a", "b", "three.eml"),
    ]


def test_run_single_submits_and_flushes(scheduler):
    sink = FakeSink()
    document = scheduler.run_single(io.BytesIO(_message(7)), sink)

    assert document.identifier == "<7@example.com>"
    assert sink.flushed == 1
    assert sink.documents["<7@example.com>"]["h"]["Subject"] == ["message 7"]


def test_run_single_raises_on_garbage(scheduler):
    sink = FakeSink()
    with pytest.raises(MessageParseError):
        scheduler.run_single(io.BytesIO(b"\r\n\r\n"), sink)
    assert sink.documents == {}


def test_8bit_bodies_are_submitted(scheduler, tmp_path):
    path = tmp_path / "8bit.eml"
    path.write_bytes(
        b"Message-ID: <8bit@example.com>\r\n"
        b"Content-Transfer-Encoding: 8bit\r\n"
        b"\r\n"
        b"caf\xc3\xa9 cr\xc3\xa8me br\xc3\xbbl\xc3\xa9e\r\n"
    )
    sink = FakeSink()
    stats = scheduler.run_batch([str(path)], sink)

    assert stats.submitted == 1
    assert stats.failed == 0
    assert "t" in sink.documents["<8bit@example.com>"]
