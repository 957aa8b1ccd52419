# ============================================================================
# mail_indexer/transformer.py - MIME node tree to Document tree
# ============================================================================

from typing import Mapping, Optional, Sequence, Tuple

from .context import PipelineContext
from .models import DecodedText, DecodeResult, Document, MessageNode


class MessageTreeTransformer:
    """Recursively turns a parsed MessageNode tree into a Document tree."""

    def __init__(self, context: PipelineContext):
        self.context = context
        self.logger = context.logger

    def transform(self, node: MessageNode, source: str = "message") -> Document:
        """Transform one message; decode and storage failures degrade, never raise."""
        self.logger.debug(f"Transforming {source}")
        return self._transform(node, source)

    def _transform(self, node: MessageNode, where: str) -> Document:
        identifier, headers = self.context.normalizer.normalize(node.headers, where)

        sub_message = None
        if node.sub_message is not None:
            sub_message = self._transform(node.sub_message, f"{where}/sub")

        parts = tuple(
            self._transform(part, f"{where}/{index}")
            for index, part in enumerate(node.parts)
            if part is not None
        )

        text_body, attachment_path = self._resolve_body(headers, node, where)

        return Document(
            identifier=identifier,
            headers=headers,
            preamble=node.preamble,
            epilogue=node.epilogue,
            parts=parts,
            sub_message=sub_message,
            text_body=text_body,
            attachment_path=attachment_path,
        )

    def _resolve_body(self, headers: Mapping[str, Sequence[str]], node: MessageNode,
                      where: str) -> Tuple[Optional[str], Optional[str]]:
        """Return (text body, attachment path); at most one is set."""
        result: DecodeResult = self.context.decoder.decode(headers, node.body, where)
        if isinstance(result, DecodedText):
            return result.text, None

        # Containers carry no body of their own
        if not result.payload:
            return None, None

        self.logger.debug(f"Storing body of {where} as attachment ({result.reason})")
        stored = self.context.store.store(result.payload)
        if stored.error:
            self.logger.warning(f"Attachment for {where} not written, keeping path {stored.path}")
        return None, stored.path or None
