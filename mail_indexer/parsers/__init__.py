from .eml_parser import EmlEnvelopeParser, canonical_header_name

__all__ = ["EmlEnvelopeParser", "canonical_header_name"]
