# ============================================================================
# mail_indexer/__init__.py - Factory and DI setup
# ============================================================================

import logging
import sys
from typing import Optional

from .attachment_store import AttachmentStore
from .charsets import CharsetResolver
from .config import MailIndexerConfig, config
from .context import PipelineContext
from .decoders import ContentDecoder
from .models import Document, MessageNode
from .normalizers import HeaderNormalizer, split_addrs, strip_space_and_comments
from .parsers.eml_parser import EmlEnvelopeParser
from .serializer import DocumentSerializer
from .transformer import MessageTreeTransformer


def setup_logging(log_level: int = logging.INFO) -> logging.Logger:
    """Configure process logging on stderr and return the package logger."""
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    return logging.getLogger(__name__)


def create_pipeline_context(attach_dir: Optional[str] = None,
                            logger: Optional[logging.Logger] = None,
                            settings: Optional[MailIndexerConfig] = None) -> PipelineContext:
    """Factory function to create the shared pipeline helpers."""
    settings = settings or config
    logger = logger or logging.getLogger(__name__)

    charsets = CharsetResolver(
        logger,
        min_confidence=settings.DETECT_MIN_CONFIDENCE,
        default_charset=settings.DEFAULT_CHARSET,
        errors=settings.CHARSET_ERRORS,
    )
    return PipelineContext(
        logger=logger,
        charsets=charsets,
        normalizer=HeaderNormalizer(logger, charsets, settings.ADDRESS_HEADERS),
        decoder=ContentDecoder(logger, charsets),
        store=AttachmentStore(logger, attach_dir or settings.ATTACH_DIR),
    )


__all__ = [
    "AttachmentStore",
    "CharsetResolver",
    "ContentDecoder",
    "Document",
    "DocumentSerializer",
    "EmlEnvelopeParser",
    "HeaderNormalizer",
    "MessageNode",
    "MessageTreeTransformer",
    "PipelineContext",
    "create_pipeline_context",
    "setup_logging",
    "split_addrs",
    "strip_space_and_comments",
]
