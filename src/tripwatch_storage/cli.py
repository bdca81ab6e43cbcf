import logging
import logging.handlers
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config import load_config
from .database import Database
from .errors import StoreError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(log_dir: Optional[Path] = None, verbose: bool = False) -> None:
    """Configure logging

    - stdout (collected by journald / cloud logging)
    - optional file, rotated daily, 30 days kept
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Avoid duplicate handlers when called twice
    root_logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stream_handler)

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            filename=log_dir / "storage.log",
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(file_handler)

    # grpc/ydb are chatty at INFO
    logging.getLogger("ydb").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    raise SystemExit(1)


@click.group(name="tripwatch-storage", help="Trip watch bot storage tools")
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON file with YDB settings (YDB_* environment variables win)"
)
@click.option("--log-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory for rotated log files")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_file, log_dir, verbose):
    setup_logging(log_dir, verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


def _load(ctx):
    try:
        return load_config(ctx.obj.get("config_file"))
    except StoreError as e:
        _fail(str(e))


@cli.command(help="Show version")
def version():
    click.echo(f"tripwatch-storage {__version__}")


@cli.command(help="Show effective configuration")
@click.pass_context
def config(ctx):
    cfg = _load(ctx)
    click.echo("📋 Current configuration:\n")
    click.echo(f"  Endpoint: {cfg.endpoint or '(not set)'}")
    click.echo(f"  Database: {cfg.database or '(not set)'}")
    click.echo(f"  Table prefix: {cfg.table_prefix or '(none)'}")
    click.echo(f"  Credentials: {cfg.credentials.value}")
    click.echo(f"  Connect timeout: {cfg.connect_timeout}s")
    if not cfg.is_complete():
        click.echo("\n⚠️  YDB_ENDPOINT and YDB_DATABASE must be set before connecting")


@cli.command(name="init-schema", help="Create missing tables")
@click.option("--timeout", type=float, default=None, help="Per statement timeout in seconds")
@click.pass_context
def init_schema(ctx, timeout):
    db = Database.from_config(_load(ctx))
    try:
        db.ensure_schema(timeout=timeout)
    except StoreError as e:
        _fail(f"Schema setup failed: {e}")
    finally:
        db.close()
    click.echo("✅ Tables are ready")


@cli.command(help="Connect and print basic counters")
@click.option("--timeout", type=float, default=30.0, show_default=True,
              help="Per query timeout in seconds")
@click.pass_context
def check(ctx, timeout):
    db = Database.from_config(_load(ctx))
    try:
        users = db.users.list_active(timeout=timeout)
        subscriptions = db.subscriptions.list_active(timeout=timeout)
    except StoreError as e:
        _fail(f"Check failed: {e}")
    finally:
        db.close()
    click.echo("✅ Connection OK")
    click.echo(f"  Active users: {len(users)}")
    click.echo(f"  Active subscriptions: {len(subscriptions)}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
