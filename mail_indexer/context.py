from __future__ import annotations

import logging
from dataclasses import dataclass

from .attachment_store import AttachmentStore
from .charsets import CharsetResolver
from .decoders import ContentDecoder
from .normalizers import HeaderNormalizer


@dataclass(frozen=True)
class PipelineContext:
    """Shared, stateless helpers built once and passed through the pipeline."""

    logger: logging.Logger
    charsets: CharsetResolver
    normalizer: HeaderNormalizer
    decoder: ContentDecoder
    store: AttachmentStore
