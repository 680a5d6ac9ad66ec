"""
CLI auth commands - sign in with the GitHub device flow, inspect, sign out.

Usage:
    privatefork login [--open]
    privatefork whoami
    privatefork logout
"""

from __future__ import annotations

import webbrowser

import click

from ..mirror.github_errors import (
    CredentialsNotFound,
    DeviceFlowError,
    GitHubError,
    InvalidCredentials,
)
from ..mirror.github_sync import GitHubClient
from ..persistence.credentials import CredentialError, FileCredentialStore
from .fork import ExitCode


def _client(settings) -> GitHubClient:
    return GitHubClient(
        FileCredentialStore(settings.credentials_path),
        client_id=settings.client_id,
        api_url=settings.api_url,
        oauth_url=settings.oauth_url,
        timeout=settings.http_timeout,
    )


@click.command("login")
@click.option("--open", "open_browser", is_flag=True, help="Open the verification page in a browser")
@click.pass_context
def login(ctx: click.Context, open_browser: bool) -> None:
    """Authorize PrivateFork with GitHub (OAuth device flow)."""
    settings = ctx.obj["settings"]

    if not settings.has_client_id:
        click.secho("❌ PRIVATEFORK_CLIENT_ID is not set", fg="red", err=True)
        click.echo("   Add it to your environment or .env file.", err=True)
        ctx.exit(ExitCode.INVALID_ARGUMENTS)

    with _client(settings) as client:
        try:
            session = client.initiate_device_flow()
        except GitHubError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            ctx.exit(ExitCode.OPERATION_FAILED)

        click.echo()
        click.echo(f"  1. Open:        {session.verification_uri}")
        click.echo("  2. Enter code:  ", nl=False)
        click.secho(session.user_code, bold=True)
        click.echo(f"\n  Waiting for authorization (expires in {session.expires_in // 60} min)...")

        if open_browser:
            webbrowser.open(session.verification_uri)

        try:
            client.poll_for_access_token(session.device_code, session.interval, session.expires_in)
        except (DeviceFlowError, GitHubError) as e:
            click.secho(f"\n❌ {e}", fg="red", err=True)
            ctx.exit(ExitCode.CREDENTIAL_VALIDATION_FAILED)

        try:
            user = client.get_current_user()
        except GitHubError as e:
            click.secho(f"\n⚠️  Token saved, but verification failed: {e}", fg="yellow", err=True)
            ctx.exit(ExitCode.CREDENTIAL_VALIDATION_FAILED)

    click.secho(f"\n✅ Signed in as {user.login}", fg="green")


@click.command("whoami")
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the GitHub account the stored token belongs to."""
    settings = ctx.obj["settings"]

    with _client(settings) as client:
        try:
            user = client.get_current_user()
        except (CredentialsNotFound, InvalidCredentials) as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            ctx.exit(ExitCode.CREDENTIALS_NOT_CONFIGURED)
        except GitHubError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            ctx.exit(ExitCode.CREDENTIAL_VALIDATION_FAILED)

    click.echo(user.login)


@click.command("logout")
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Delete stored credentials."""
    settings = ctx.obj["settings"]

    try:
        FileCredentialStore(settings.credentials_path).delete()
    except CredentialError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        ctx.exit(ExitCode.OPERATION_FAILED)

    click.echo("Signed out.")
