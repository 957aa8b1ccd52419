# ============================================================================
# mail_indexer/normalizers.py
# ============================================================================

import base64
import logging
import quopri
import re
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .charsets import CharsetResolver

_ADDR_SPLIT = re.compile(r'\s*,\s*')
_WHITESPACE = re.compile(r'\s+')
_COMMENT = re.compile(r'\([^)]*\)')
_ENCODED_WORD = re.compile(r'=\?([^?\s]+)\?([bBqQ])\?([^?\s]*)\?=')


def split_addrs(values: Iterable[str]) -> List[str]:
    """Split address list values into one string per address entry."""
    result = []
    for value in values:
        result.extend(_ADDR_SPLIT.split(value))
    return result


def strip_space_and_comments(values: Iterable[str]) -> List[str]:
    """Drop RFC 2822 comments and folding whitespace, which date parsers reject."""
    result = []
    for value in values:
        value = _COMMENT.sub('', value)
        value = _WHITESPACE.sub(' ', value)
        result.append(value.strip())
    return result


class HeaderNormalizer:
    """Cleans raw header fields for indexing."""

    ID_HEADER = 'Message-Id'
    DATE_HEADER = 'Date'

    def __init__(self, logger: logging.Logger, charsets: CharsetResolver,
                 address_headers: Sequence[str] = ('From', 'To', 'Cc', 'Bcc',
                                                   'Return-Path', 'Delivered-To')):
        self.logger = logger
        self.charsets = charsets
        self.address_headers = tuple(address_headers)

    def normalize(self, raw_headers: Iterable[Tuple[str, str]],
                  where: str = "message") -> Tuple[str, Mapping[str, Tuple[str, ...]]]:
        """
        Normalize raw header pairs.

        Returns:
            (identifier, read-only mapping of field name to values)
        """
        grouped: Dict[str, List[str]] = {}
        for name, value in raw_headers:
            grouped.setdefault(name, []).append(value)

        identifier = ''
        ids = grouped.pop(self.ID_HEADER, None)
        if ids:
            identifier = ids[0].strip()

        for name, values in grouped.items():
            grouped[name] = [
                self._decode_value(name, index, value, where)
                for index, value in enumerate(values)
            ]

        if self.DATE_HEADER in grouped:
            grouped[self.DATE_HEADER] = strip_space_and_comments(grouped[self.DATE_HEADER])
        for name in self.address_headers:
            if name in grouped:
                grouped[name] = split_addrs(grouped[name])

        return identifier, MappingProxyType(
            {name: tuple(values) for name, values in grouped.items()}
        )

    def decode_words(self, value: str) -> str:
        """Decode RFC 2047 encoded words; the text around them is left untouched."""
        matches = list(_ENCODED_WORD.finditer(value))
        if not matches:
            return value

        decoded = []
        position = 0
        for index, match in enumerate(matches):
            between = value[position:match.start()]
            # Whitespace separating two encoded words is not part of the text
            if not (index and between.isspace()):
                decoded.append(between)
            decoded.append(self._decode_word(*match.groups()))
            position = match.end()
        decoded.append(value[position:])
        return ''.join(decoded)

    def _decode_word(self, charset: str, encoding: str, text: str) -> str:
        data = text.encode('ascii')
        if encoding in 'bB':
            payload = base64.b64decode(data, validate=True)
        else:
            payload = quopri.decodestring(data, header=True)
        # RFC 2231 may append a language tag: utf-8*en
        return self.charsets.decode_word(charset.split('*', 1)[0], payload)

    def _decode_value(self, name: str, index: int, value: str, where: str) -> str:
        try:
            return self.decode_words(value)
        except (LookupError, ValueError) as e:
            self.logger.warning(f"Could not decode header {name} [{index}] '{value}' in {where}: {e}")
            return value
