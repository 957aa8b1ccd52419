from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple, Union


@dataclass
class MessageNode:
    """One parsed MIME node as produced by an envelope parser."""

    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    preamble: Optional[bytes] = None
    epilogue: Optional[bytes] = None
    parts: List[Optional["MessageNode"]] = field(default_factory=list)
    sub_message: Optional["MessageNode"] = None


@dataclass(frozen=True)
class Document:
    """One node of the output tree, ready for serialization."""

    identifier: str = ""
    headers: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    preamble: Optional[bytes] = None
    epilogue: Optional[bytes] = None
    parts: Tuple["Document", ...] = ()
    sub_message: Optional["Document"] = None
    text_body: Optional[str] = None
    attachment_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.text_body is not None and self.attachment_path is not None:
            raise ValueError("a document holds either a text body or an attachment, not both")

    def header(self, name: str) -> Optional[str]:
        values = self.headers.get(name)
        return values[0] if values else None


@dataclass(frozen=True)
class DecodedText:
    text: str
    charset: str


@dataclass(frozen=True)
class Fallback:
    """Body bytes that could not be resolved to text and go to the store."""

    payload: bytes
    reason: str


DecodeResult = Union[DecodedText, Fallback]


@dataclass(frozen=True)
class StoredAttachment:
    path: str
    created: bool = False
    error: Optional[str] = None
