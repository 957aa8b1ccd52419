# ============================================================================
# mail_indexer/cli.py - CLI
# ============================================================================

import argparse
import logging
import sys
from typing import List, Optional

from . import create_pipeline_context, setup_logging
from .config import config
from .errors import ErrorHandler
from .parsers.eml_parser import EmlEnvelopeParser
from .scheduler import IngestionScheduler
from .search_index import BulkSink, DirectSink, create_client, init_index
from .serializer import DocumentSerializer


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Index MIME email messages into a search index"
    )
    parser.add_argument("paths", nargs="*",
                        help="Message files or directories; none or '-' reads one message from stdin")
    parser.add_argument("--attachdir", default=config.ATTACH_DIR,
                        help="Path to the attachments directory")
    parser.add_argument("--url", default=config.SEARCH_URL,
                        help="URL of the search server")
    parser.add_argument("--index", default=config.INDEX,
                        help="Name of the index")
    parser.add_argument("--init", action="store_true",
                        help="Initialize the index instead of indexing mail")
    parser.add_argument("--recreate", action="store_true",
                        help="With --init, delete an existing index first")
    parser.add_argument("--workers", type=int, default=config.WORKERS,
                        help="Number of concurrent workers in batch mode")
    parser.add_argument("--bulk-actions", type=int, default=config.BULK_ACTIONS,
                        help="Documents per bulk request")
    parser.add_argument("--log-level", type=str, default=config.DEFAULT_LOG_LEVEL,
                        choices=config.VALID_LOG_LEVELS,
                        help="Set logging level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command line interface for the mail indexer."""
    args = build_arg_parser().parse_args(argv)
    logger = setup_logging(getattr(logging, args.log_level.upper()))
    error_handler = ErrorHandler(logger)

    try:
        client = create_client(args.url, verify_certs=config.VERIFY_CERTS, logger=logger)
        if args.init:
            init_index(client, args.index, logger, recreate=args.recreate)
            return 0

        context = create_pipeline_context(attach_dir=args.attachdir, logger=logger)
        scheduler = IngestionScheduler(
            context,
            EmlEnvelopeParser(logger),
            DocumentSerializer(logger),
            workers=args.workers,
            queue_size_per_worker=config.QUEUE_SIZE_PER_WORKER,
            shutdown_timeout=config.SHUTDOWN_TIMEOUT,
        )

        if not args.paths or args.paths == ["-"]:
            scheduler.run_single(sys.stdin.buffer, DirectSink(client, args.index, logger))
            return 0

        sink = BulkSink(client, args.index, logger, bulk_actions=args.bulk_actions)
        try:
            scheduler.run_batch(args.paths, sink)
        finally:
            sink.close()
        logger.info(f"Bulk results: {sink.succeeded} indexed, {sink.failed} rejected")
        return 0

    except Exception as e:
        error_handler.report(e)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
