"""aliembed.parser: extraction of embedded page metadata."""
from aliembed.parser.meta_parser import OG_FIELDS, extract, find_og

__all__ = ["OG_FIELDS", "extract", "find_og"]
