"""
PrivateFork - CLI Entry Point

Usage:
    privatefork login
    privatefork fork <repository-url> <local-path>
    privatefork whoami
    privatefork logout
"""

from __future__ import annotations

import click
from dotenv import find_dotenv, load_dotenv

from .cli.auth import login, logout, whoami
from .cli.fork import fork
from .logging_config import setup_logging
from .mirror.config import Settings


@click.group()
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (overrides LOG_LEVEL)")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """PrivateFork - turn a public GitHub repository into a private one."""
    # .env from the working directory, without overriding the real environment
    load_dotenv(find_dotenv(usecwd=True))
    setup_logging(level=log_level)

    ctx.ensure_object(dict)
    ctx.obj.setdefault("settings", Settings.from_env())


cli.add_command(fork)
cli.add_command(login)
cli.add_command(whoami)
cli.add_command(logout)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
