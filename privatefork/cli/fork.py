"""
CLI fork command - create a private copy of a public repository.

Usage:
    privatefork fork https://github.com/acme/widgets ~/Projects/widgets
    privatefork fork https://github.com/acme/widgets ~/Projects/widgets --json-lines
"""

from __future__ import annotations

import json
import sys
from enum import IntEnum

import click

from ..mirror.github_errors import CredentialsNotFound
from ..mirror.manager import (
    CredentialValidationFailed,
    ForkOrchestrator,
    InvalidLocalPath,
    InvalidRepositoryURL,
)
from ..mirror.state import EventLevel, ForkResult, StageEvent
from ..persistence.credentials import CredentialNotFound
from ..validation import ValidationError, validate_fork_arguments


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGUMENTS = 1
    CREDENTIALS_NOT_CONFIGURED = 2
    CREDENTIAL_VALIDATION_FAILED = 3
    OPERATION_FAILED = 4


def exit_code_for(result: ForkResult) -> ExitCode:
    """Map a workflow result to the process exit code."""
    if result.ok:
        return ExitCode.SUCCESS

    error = result.error
    if isinstance(error, (InvalidRepositoryURL, InvalidLocalPath)):
        return ExitCode.INVALID_ARGUMENTS
    if isinstance(error, CredentialValidationFailed):
        if isinstance(error.cause, (CredentialNotFound, CredentialsNotFound)):
            return ExitCode.CREDENTIALS_NOT_CONFIGURED
        return ExitCode.CREDENTIAL_VALIDATION_FAILED
    return ExitCode.OPERATION_FAILED


@click.command("fork")
@click.argument("repository_url")
@click.argument("local_path")
@click.option("--json-lines", "jsonl", is_flag=True, help="Output JSON lines (one per stage)")
@click.pass_context
def fork(ctx: click.Context, repository_url: str, local_path: str, jsonl: bool) -> None:
    """Create a private fork of REPOSITORY_URL, cloned into LOCAL_PATH."""
    settings = ctx.obj["settings"]

    try:
        validate_fork_arguments(repository_url, local_path)
    except ValidationError as e:
        if jsonl:
            print(json.dumps({
                "status": "invalid",
                "field": e.field,
                "message": e.message,
                "details": e.details,
            }), flush=True)
        else:
            click.secho(f"❌ Invalid arguments: {e}", fg="red", err=True)
        ctx.exit(ExitCode.INVALID_ARGUMENTS)

    def emit(event: StageEvent) -> None:
        """Print one stage and flush immediately for streaming."""
        if jsonl:
            print(json.dumps(event.to_dict()), flush=True)
        elif event.level == EventLevel.WARNING:
            click.secho(f"  ⚠️  {event.message}", fg="yellow")
        else:
            click.echo(f"  • {event.message}")
        sys.stdout.flush()

    if not jsonl:
        click.echo(f"\n🔀 Forking {repository_url} → {local_path}\n")

    orchestrator = ForkOrchestrator.from_settings(settings)
    result = orchestrator.create_private_fork(repository_url, local_path, on_status=emit)

    code = exit_code_for(result)

    if jsonl:
        summary = {
            "status": "ok" if result.ok else "failed",
            "message": result.message,
            "repository": result.repository.html_url if result.repository else None,
        }
        if result.cleanup is not None:
            summary["cleanup"] = {
                "repository": result.cleanup.repository.full_name,
                "deleted": result.cleanup.deleted,
                "error": result.cleanup.error,
            }
        print(json.dumps(summary), flush=True)
        ctx.exit(code)

    click.echo()
    if result.ok:
        click.secho(f"✅ {result.message}", fg="green")
    else:
        click.secho(f"❌ {result.message}", fg="red", err=True)
        if code == ExitCode.CREDENTIALS_NOT_CONFIGURED:
            click.echo("💡 Run 'privatefork login' to sign in to GitHub.", err=True)
        if result.cleanup is not None and not result.cleanup.deleted:
            click.secho(
                f"⚠️  {result.cleanup.repository.html_url} could not be deleted; "
                "manual cleanup may be required.",
                fg="yellow",
                err=True,
            )
    ctx.exit(code)
