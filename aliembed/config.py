# === FILE: aliembed/config.py ===
"""
Модуль для загрузки и валидации конфигурации сервиса AliEmbed.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
    model_validator,
)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; Discordbot/2.0; +https://discordapp.com)"
DEFAULT_IMAGE = "https://ae01.alicdn.com/kf/Sb900db0ad7604a83b297a51d9222905bm/624x160.png"

#: переменные окружения, перекрывающие значения из файла
ENV_OVERRIDES: dict[str, str] = {
    "ALIEMBED_WEBHOOK_URL": "webhook_url",
    "ALIEMBED_BROWSER_ENDPOINT": "browser_endpoint",
}


class EmbedConfig(BaseModel):
    """Конфигурация одного процесса сервиса: сеть, таймауты, внешние интеграции."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field("0.0.0.0", min_length=1, description="Адрес для входящих соединений.")
    port: int = Field(8080, ge=1, le=65535, description="Порт HTTP-сервера.")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="User-Agent исходящих запросов.")
    preview_marker: str = Field("Discord", min_length=1, description="Подстрока User-Agent клиента превью.")
    canonical_base: str = Field(
        "https://www.aliexpress.com", min_length=1, description="Базовый адрес страниц товаров."
    )
    max_attempts: int = Field(5, ge=1, description="Число попыток прямой загрузки страницы.")
    request_timeout: float = Field(10.0, gt=0, description="Таймаут одного исходящего запроса (секунд).")
    render_timeout_ms: int = Field(8000, gt=0, description="Таймаут навигации браузера (мс).")
    render_settle_ms: int = Field(500, ge=0, description="Пауза для скриптов после DOMContentLoaded (мс).")
    drip_interval_ms: int = Field(500, gt=0, description="Интервал keep-alive комментариев (мс).")
    deadline_ms: int = Field(25000, gt=0, description="Предельное время отправки комментариев (мс).")
    grace_ms: int = Field(2000, ge=0, description="Дополнительное ожидание после дедлайна (мс).")
    browser_endpoint: Optional[str] = Field(None, description="CDP-адрес удалённого браузера.")
    webhook_url: Optional[HttpUrl] = Field(None, description="Адрес webhook для уведомлений.")
    theme_color: str = Field("#FF0000", pattern=r"^#[0-9A-Fa-f]{6}$", description="Цвет темы превью.")
    site_name: str = Field("alimbedxpress.com created by alf", description="Значение og:site_name.")
    default_title: str = Field("AliExpress Product", min_length=1, description="Заголовок по умолчанию.")
    default_image: str = Field(DEFAULT_IMAGE, min_length=1, description="Изображение по умолчанию.")

    @field_validator("canonical_base", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("browser_endpoint", "webhook_url", mode="before")
    def _blank_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _check_timers(self) -> EmbedConfig:
        if self.drip_interval_ms > self.deadline_ms:
            raise ValueError("drip_interval_ms must not exceed deadline_ms")
        return self

    @property
    def theme_color_int(self) -> int:
        """Цвет темы как целое число (формат цветов Discord embed)."""
        return int(self.theme_color.lstrip("#"), 16)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is not None:
            merged[field_name] = value
    return merged


def load_config(path: Union[str, Path, None] = None) -> EmbedConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект EmbedConfig.
    Без пути использует configs/default.yaml, если он есть, иначе значения по умолчанию.
    Переменные окружения ALIEMBED_* перекрывают значения из файла.
    """
    if path is None:
        path_obj: Optional[Path] = _DEFAULT_CFG if _DEFAULT_CFG.is_file() else None
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    data: dict[str, Any] = {}
    if path_obj is not None:
        suffix = path_obj.suffix.lower()
        if suffix in (".yaml", ".yml"):
            data = _read_yaml(path_obj)
        elif suffix == ".json":
            data = _read_json(path_obj)
        else:
            raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return EmbedConfig(**_apply_env(data))
    except ValidationError:
        raise


__all__ = ["EmbedConfig", "load_config", "ENV_OVERRIDES", "DEFAULT_USER_AGENT", "DEFAULT_IMAGE"]
