# === FILE: aliembed/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска сервиса AliEmbed через командную строку.

Команды:
  serve     Запустить HTTP-сервер превью
  config    Показать текущую конфигурацию
  preview   Один раз загрузить метаданные товара и вывести их

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Дополнительно:
  --version, -v       Показать версию AliEmbed

Пример:
  aliembed --config configs/default.yaml serve --port 8080
  aliembed preview 1005006234567890 --html
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from aiohttp import ClientSession

from aliembed import __version__
from aliembed.app import run
from aliembed.config import load_config
from aliembed.errors import AcquisitionFailure
from aliembed.fetcher import PageFetcher, build_renderer
from aliembed.logger import DEFAULT_FORMAT, init_logging
from aliembed.models import FetchTarget, ItemRequest, PageMetadata
from aliembed.routing import canonical_url
from aliembed.stream import DocumentRenderer

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


async def fetch_preview(cfg, item_id: str) -> tuple[PageMetadata, bool]:
    """Загружает метаданные товара; при неудаче возвращает значения по умолчанию."""
    defaults = PageMetadata.defaults_for(item_id, cfg.default_title, cfg.default_image)
    target = FetchTarget(url=canonical_url(item_id, cfg.canonical_base), user_agent=cfg.user_agent)
    async with ClientSession() as session:
        fetcher = PageFetcher(session, cfg, build_renderer(cfg))
        try:
            return await fetcher.fetch_metadata(target, defaults), True
        except AcquisitionFailure:
            return defaults, False


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='AliEmbed, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--access-log-level', 'access_level',
    default='WARNING', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень журнала запросов aiohttp'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, access_level, log_file, log_format):
    """Группа команд AliEmbed CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format,
        access_level=access_level,
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', '-H', 'host', default=None, help='Адрес (override host)')
@click.option('--port', '-p', 'port', type=int, default=None, help='Порт (override port)')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервер превью."""
    cfg = ctx.obj['config']
    try:
        run(cfg, host=host, port=port)
    except OSError as e:
        print_error(f'Не удалось запустить сервер: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


@cli.command('preview', context_settings=CONTEXT_SETTINGS)
@click.argument('item_id')
@click.option('--html', 'as_html', is_flag=True, help='Вывести готовый HTML-документ вместо JSON')
@click.pass_context
def preview(ctx, item_id, as_html):
    """Загрузить метаданные товара ITEM_ID и вывести их."""
    if not item_id.isdigit():
        print_error(f'Неверный идентификатор товара: {item_id}')
    cfg = ctx.obj['config']
    try:
        meta, resolved = asyncio.run(fetch_preview(cfg, item_id))
    except Exception as e:
        print_error(f'Ошибка при загрузке страницы: {e}')

    if as_html:
        item = ItemRequest(item_id=item_id, canonical_url=canonical_url(item_id, cfg.canonical_base))
        click.echo(DocumentRenderer(cfg).full(item, meta).decode('utf-8'))
        return

    data = {
        'item_id': item_id,
        'title': meta.title,
        'description': meta.description,
        'image_url': meta.image_url,
        'resolved': resolved,
    }
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    cli()
