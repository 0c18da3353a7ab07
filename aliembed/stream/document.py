# File: aliembed/stream/document.py
"""aliembed.stream.document: HTML-документ превью, разбитый на части для потоковой отдачи."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Final, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from aliembed.config import EmbedConfig
from aliembed.models import ItemRequest, PageMetadata

TEMPLATE_DIR: Final[Path] = Path(__file__).resolve().parent.parent / "templates"

#: inert keep-alive token written while metadata is still being fetched
FILLER: Final[bytes] = b"<!-- -->\n"


class DocumentRenderer:
    """Рендерит преамбулу, окончание и аварийный вариант документа через Jinja2."""

    def __init__(self, config: EmbedConfig, template_dir: Union[Path, str] = TEMPLATE_DIR) -> None:
        self.config = config
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def _render(self, name: str, **context: Any) -> bytes:
        return self.env.get_template(name).render(**context).encode("utf-8")

    def preamble(self) -> bytes:
        """Открывающие html/head и content-type meta: отдаются сразу после заголовков."""
        return self._render("preamble.html.j2")

    def remainder(self, item: ItemRequest, meta: PageMetadata) -> bytes:
        """Закрывающая часть head с метаданными и видимое тело страницы."""
        return self._render(
            "remainder.html.j2",
            item=item,
            meta=meta,
            theme_color=self.config.theme_color,
            site_name=self.config.site_name,
        )

    def fallback(self, item: ItemRequest, meta: PageMetadata) -> bytes:
        """Минимальный документ для записи после ошибки потока."""
        return self._render("fallback.html.j2", item=item, meta=meta)

    def full(self, item: ItemRequest, meta: PageMetadata) -> bytes:
        """Документ целиком (для CLI и неблокирующих проверок)."""
        return self.preamble() + self.remainder(item, meta)


__all__ = ["DocumentRenderer", "FILLER", "TEMPLATE_DIR"]
