# === FILE: aliembed/parser/meta_parser.py ===
"""Open Graph metadata extraction.

AliExpress product pages carry their summary in ``<meta property="og:*">``
tags. Only three of them matter for an embed:

* ``og:title``       → :attr:`PageMetadata.title`
* ``og:description`` → :attr:`PageMetadata.description`
* ``og:image``       → :attr:`PageMetadata.image_url`

Each field is looked up on its own; a page that lacks ``og:title`` still
yields its description and image. Lookups are plain regular-expression
searches, so the function is pure and safe to call repeatedly.
"""
from __future__ import annotations

import html
import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Optional

from aliembed.logger import logger
from aliembed.models import PageMetadata

__all__: Sequence[str] = ("OG_FIELDS", "extract", "find_og")

#: og property name -> PageMetadata attribute
OG_FIELDS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "image": "image_url",
}


@lru_cache(maxsize=None)
def _pattern(name: str) -> re.Pattern[str]:
    return re.compile(
        rf'<meta\s+property="og:{re.escape(name)}"\s+content="([^"]*)"',
        re.IGNORECASE,
    )


def find_og(markup: str, name: str) -> Optional[str]:
    """Return the first ``og:<name>`` content value, or *None* if absent or empty."""
    match = _pattern(name).search(markup)
    value = html.unescape(match.group(1)) if match else ""
    logger.debug("Extracting og:%s: %s", name, value or "Not found")
    return value or None


def extract(markup: str, defaults: PageMetadata) -> PageMetadata:
    """Build :class:`PageMetadata` from *markup*, keeping *defaults* for missing fields."""
    found = {attr: find_og(markup, name) for name, attr in OG_FIELDS.items()}
    return defaults.merged(**found)
