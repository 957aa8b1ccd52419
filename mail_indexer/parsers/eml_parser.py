# ============================================================================
# mail_indexer/parsers/eml_parser.py
# ============================================================================

import email.parser
import email.policy
import logging
import re
from email.message import Message
from typing import List, Optional, Tuple

from ..errors import MessageParseError
from ..interfaces import EnvelopeParser
from ..models import MessageNode

_ENCODED_CTES = ('quoted-printable', 'base64', 'x-uuencode', 'uuencode', 'uue', 'x-uue')
_FOLD = re.compile(r'\r?\n(?=[ \t])')
_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def canonical_header_name(name: str) -> str:
    """Canonical MIME form of a field name: message-id -> Message-Id."""
    if not _TOKEN.match(name):
        return name
    return '-'.join(word[:1].upper() + word[1:].lower() for word in name.split('-'))


def _raw_bytes(text: Optional[str]) -> Optional[bytes]:
    # BytesParser decodes with ascii/surrogateescape; this recovers the input bytes
    if text is None:
        return None
    return text.encode('ascii', 'surrogateescape')


class EmlEnvelopeParser(EnvelopeParser):
    """Parser for standard RFC 5322 / MIME message files."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        # compat32 keeps raw header values and undecoded bodies
        self.bytes_parser = email.parser.BytesParser(policy=email.policy.compat32)

    def parse(self, data: bytes, filename: Optional[str] = None) -> MessageNode:
        """Parse EML data into a node tree."""
        source = filename or '<stdin>'
        if not data or not data.strip():
            raise MessageParseError(f"{source}: empty input")

        self.logger.info(f"Parsing {source}...")
        try:
            message = self.bytes_parser.parsebytes(data)
        except Exception as e:
            raise MessageParseError(f"{source}: {e}") from e

        if not message.keys():
            raise MessageParseError(f"{source}: no header fields found")
        try:
            return self._to_node(message)
        except Exception as e:
            raise MessageParseError(f"{source}: {e}") from e

    def _to_node(self, message: Message) -> MessageNode:
        node = MessageNode(
            headers=self._headers(message),
            preamble=_raw_bytes(message.preamble),
            epilogue=_raw_bytes(message.epilogue),
        )

        if not message.is_multipart():
            node.body = self._body(message)
            return node

        payload = message.get_payload()
        if message.get_content_type() == 'message/rfc822' and payload:
            node.sub_message = self._to_node(payload[0])
        else:
            node.parts = [
                self._to_node(part) if isinstance(part, Message) else None
                for part in payload
            ]
        return node

    def _headers(self, message: Message) -> List[Tuple[str, str]]:
        headers = []
        for name, value in message.raw_items():
            value = _FOLD.sub('', str(value))
            # 8-bit header bytes arrive as surrogates
            value = value.encode('ascii', 'surrogateescape').decode('utf-8', 'replace')
            headers.append((canonical_header_name(name), value))
        return headers

    @staticmethod
    def _body(message: Message) -> bytes:
        """Body bytes exactly as in the input, still transfer-encoded."""
        cte = str(message.get('Content-Transfer-Encoding', '')).strip().lower()
        if cte not in _ENCODED_CTES:
            # decode=True returns identity-encoded bodies byte for byte
            return message.get_payload(decode=True) or b''
        # Without decode, 8-bit bytes come back decoded with the part charset
        return (message.get_payload() or '').encode('utf-8', 'surrogateescape')
