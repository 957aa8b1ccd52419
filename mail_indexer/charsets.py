# ============================================================================
# mail_indexer/charsets.py
# ============================================================================

import codecs
import logging
import re
from typing import Optional, Tuple

import chardet


class CharsetResolver:
    """Resolves a declared or detected charset and decodes bytes with it."""

    # Markup is stripped before detection so tag names don't skew the guess
    HTML_MARKUP_PATTERNS = [
        rb'<script[^>]*>.*?</script>',
        rb'<style[^>]*>.*?</style>',
        rb'<!--.*?-->',
        rb'<[^>]+>',
    ]

    def __init__(self, logger: logging.Logger, min_confidence: float = 0.5,
                 default_charset: str = 'utf-8', errors: str = 'replace'):
        self.logger = logger
        self.min_confidence = min_confidence
        self.default_charset = default_charset
        self.errors = errors
        self._markup_patterns = [
            re.compile(pattern, re.DOTALL | re.IGNORECASE)
            for pattern in self.HTML_MARKUP_PATTERNS
        ]

    def detect(self, body: bytes, description: str, is_html: bool = False) -> str:
        """Guess the charset of undeclared content, defaulting when unsure."""
        sample = self._strip_markup(body) if is_html else body
        result = chardet.detect(sample or body)
        encoding = result.get('encoding')
        confidence = result.get('confidence') or 0.0

        if encoding and confidence >= self.min_confidence:
            self.logger.info(
                f"No charset in {description}, detected {encoding} "
                f"(lang {result.get('language') or 'unknown'}, confidence {confidence:.0%})"
            )
            return encoding

        self.logger.info(
            f"No charset in {description}, detected nothing, assuming {self.default_charset}"
        )
        return self.default_charset

    def resolve(self, charset: Optional[str], body: bytes, description: str,
                is_html: bool = False) -> str:
        if charset:
            return charset
        return self.detect(body, description, is_html)

    def decode(self, charset: Optional[str], body: bytes, description: str,
               is_html: bool = False) -> Tuple[str, str]:
        """
        Decode body bytes to text.

        Returns:
            (text, charset actually used)

        Raises:
            LookupError: the charset name is unknown or not a text encoding
            UnicodeDecodeError: the bytes are invalid for the charset
        """
        charset = self.resolve(charset, body, description, is_html)
        codec = codecs.lookup(charset)
        return body.decode(codec.name, self.errors), charset

    def decode_word(self, charset: str, data: bytes) -> str:
        """Decode the payload of one charset-tagged header encoded word."""
        text, _ = self.decode(charset, data, f"header '{data!r}'")
        return text

    def _strip_markup(self, body: bytes) -> bytes:
        for pattern in self._markup_patterns:
            body = pattern.sub(b' ', body)
        return body
