# ============================================================================
# mail_indexer/interfaces.py
# ============================================================================

from abc import ABC, abstractmethod
from typing import Optional

from .models import MessageNode


class EnvelopeParser(ABC):
    """Interface for turning raw message bytes into a node tree."""

    @abstractmethod
    def parse(self, data: bytes, filename: Optional[str] = None) -> MessageNode:
        """Parse the data into a MessageNode tree. Raises MessageParseError."""
        pass


class DocumentSink(ABC):
    """Interface for destinations accepting serialized documents."""

    @abstractmethod
    def add(self, identifier: str, body: str) -> None:
        """Submit one serialized document tagged with its identifier."""
        pass

    def flush(self) -> None:
        """Push any buffered documents."""

    def close(self) -> None:
        self.flush()
