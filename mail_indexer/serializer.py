# ============================================================================
# mail_indexer/serializer.py
# ============================================================================

import base64
import json
import logging
from typing import Any, Dict

from .errors import SerializationError
from .models import Document


class DocumentSerializer:
    """Converts Documents to the index wire shape; empty fields are omitted."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def to_dict(self, document: Document) -> Dict[str, Any]:
        """Source body of a document; the top-level identifier is also the index _id."""
        result: Dict[str, Any] = {}
        if document.identifier:
            result['id'] = document.identifier
        if document.headers:
            result['h'] = {name: list(values) for name, values in document.headers.items()}
        if document.preamble:
            result['pre'] = base64.b64encode(document.preamble).decode('ascii')
        if document.epilogue:
            result['epi'] = base64.b64encode(document.epilogue).decode('ascii')
        if document.parts:
            result['p'] = [self.to_dict(part) for part in document.parts]
        if document.sub_message is not None:
            result['sub'] = self.to_dict(document.sub_message)
        if document.text_body:
            result['t'] = document.text_body
        if document.attachment_path:
            result['a'] = document.attachment_path
        return result

    def dumps(self, document: Document) -> str:
        try:
            return json.dumps(self.to_dict(document))
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e
