# ============================================================================
# mail_indexer/decoders.py
# ============================================================================

import base64
import binascii
import logging
import quopri
import re
from email.message import Message
from typing import Mapping, Optional, Sequence, Tuple

from .charsets import CharsetResolver
from .models import DecodedText, DecodeResult, Fallback


class ContentDecoder:
    """Two-stage body decoding: transfer-encoding, then charset."""

    # URL-safe alphabet and similar variants seen in the wild
    BASE64_CONFUSABLES = bytes.maketrans(b'-_', b'+/')
    BASE64_INVALID = re.compile(rb'[^A-Za-z0-9+/=]')
    MEDIA_TYPE = re.compile(r'^[\w.+-]+/[\w.+-]+$')

    def __init__(self, logger: logging.Logger, charsets: CharsetResolver):
        self.logger = logger
        self.charsets = charsets

    def decode(self, headers: Mapping[str, Sequence[str]], body: bytes,
               where: str = "part") -> DecodeResult:
        """Resolve one part's body to text, or to bytes destined for the store."""
        encoding = self._first(headers, 'Content-Transfer-Encoding')
        try:
            payload = self.decode_transfer_encoding(encoding, body)
        except (ValueError, binascii.Error) as e:
            self.logger.warning(f"Could not decode {encoding} body of {where}: {e}")
            return Fallback(body, f"transfer-encoding {encoding}: {e}")

        ctype = self._first(headers, 'Content-Type') or 'text/plain'
        if not ctype.strip().lower().startswith('text'):
            return Fallback(payload, f"not text: {ctype}")
        if self._is_attachment(self._first(headers, 'Content-Disposition')):
            return Fallback(payload, "attachment disposition")

        mediatype, charset = self.parse_media_type(ctype)
        try:
            text, used = self.charsets.decode(
                charset, payload, f"Content-Type: {ctype} ({where})", 'html' in mediatype
            )
        except (LookupError, ValueError) as e:
            self.logger.warning(f"Could not decode body of {where} ({charset or 'detected'}): {e}")
            return Fallback(payload, f"charset: {e}")
        return DecodedText(text, used)

    def decode_transfer_encoding(self, encoding: Optional[str], body: bytes) -> bytes:
        encoding = (encoding or '').strip().lower()
        if encoding == 'quoted-printable':
            return quopri.decodestring(body)
        if encoding == 'base64':
            # The strict decoder rejects line breaks and separators
            cleaned = self.BASE64_INVALID.sub(b'', body.translate(self.BASE64_CONFUSABLES))
            return base64.b64decode(cleaned, validate=True)
        return body

    def parse_media_type(self, ctype: str) -> Tuple[str, Optional[str]]:
        """Return (media type, charset parameter), guessing when unreadable."""
        mediatype = ctype.split(';', 1)[0].strip().lower()
        if not self.MEDIA_TYPE.match(mediatype):
            guessed = 'text/html' if 'html' in ctype.lower() else 'text/plain'
            self.logger.info(f"Unreadable Content-Type: {ctype}, assuming {guessed}")
            return guessed, None

        scratch = Message()
        scratch['Content-Type'] = ctype
        return mediatype, scratch.get_content_charset()

    @staticmethod
    def _is_attachment(disposition: Optional[str]) -> bool:
        if not disposition:
            return False
        return disposition.split(';', 1)[0].strip().lower() == 'attachment'

    @staticmethod
    def _first(headers: Mapping[str, Sequence[str]], name: str) -> Optional[str]:
        values = headers.get(name)
        return values[0] if values else None
