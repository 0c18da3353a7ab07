# aliembed/routing.py
"""aliembed.routing: разбор пути запроса и выбор между превью и редиректом."""
from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from typing import Optional

from aliembed.config import EmbedConfig
from aliembed.errors import MalformedRequest
from aliembed.models import ItemRequest

ITEM_PATH_RE = re.compile(r"/(item|i)/(\d+)\.html")


class RequestKind(enum.Enum):
    PREVIEW = "preview"
    STANDARD = "standard"


def canonical_url(item_id: str, base: str = "https://www.aliexpress.com") -> str:
    """Полный адрес страницы товара по его идентификатору."""
    return f"{base.rstrip('/')}/item/{item_id}.html"


def parse_item_path(path: str, config: Optional[EmbedConfig] = None) -> Optional[ItemRequest]:
    """Возвращает ItemRequest для /item/<id>.html и /i/<id>.html, иначе None."""
    match = ITEM_PATH_RE.search(path)
    if not match:
        return None
    item_id = match.group(2)
    base = config.canonical_base if config else "https://www.aliexpress.com"
    return ItemRequest(item_id=item_id, canonical_url=canonical_url(item_id, base))


def require_item(path: str, config: Optional[EmbedConfig] = None) -> ItemRequest:
    """Как parse_item_path, но бросает MalformedRequest для чужих путей."""
    item = parse_item_path(path, config)
    if item is None:
        raise MalformedRequest(path)
    return item


def classify(headers: Mapping[str, str], marker: str = "Discord") -> RequestKind:
    """Превью, если в User-Agent есть подстрока *marker*."""
    user_agent = headers.get("User-Agent") or ""
    return RequestKind.PREVIEW if marker in user_agent else RequestKind.STANDARD


__all__ = ["RequestKind", "ITEM_PATH_RE", "canonical_url", "parse_item_path", "require_item", "classify"]
