"""Command-line interface for gdrive-mcp-server.

Offline helpers for obtaining and checking access tokens. They never
touch a running server; hand the printed token to it through the
GOOGLE_DRIVE_ACCESS_TOKEN variable, POST /set-token or the
x-access-token header.
"""

import sys
from pathlib import Path
from typing import Optional

import click
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from shared.config import get_settings
from gdrive_server import __version__
from gdrive_server.credentials import CredentialStore

ENV_VAR_NAME = "GOOGLE_DRIVE_ACCESS_TOKEN"


def write_env_file(path: Path, token: str) -> None:
    """Set the access token line of a .env file, keeping other lines."""
    lines: list[str] = []
    if path.exists():
        lines = [
            line for line in path.read_text().splitlines()
            if not line.startswith(f"{ENV_VAR_NAME}=")
        ]
    lines.append(f"{ENV_VAR_NAME}={token}")
    path.write_text("\n".join(lines) + "\n")


def _emit_token(token: str, expiry: Optional[object], env_file: Optional[Path]) -> None:
    click.echo(token)
    if expiry is not None:
        click.echo(f"Expires at: {expiry}", err=True)
    if env_file is not None:
        write_env_file(env_file, token)
        click.echo(f"Token saved to {env_file}", err=True)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Google Drive MCP Server - serve tools and manage access tokens."""
    pass


@main.command()
@click.option("--host", default=None, help="Listen address (defaults to settings)")
@click.option("--port", type=int, default=None, help="Listen port (defaults to PORT or 3000)")
def serve(host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP server."""
    import uvicorn

    from gdrive_server.main import create_app

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
    )


@main.command("generate-token")
@click.option(
    "--key-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Service account key file (defaults to GOOGLE_SERVICE_ACCOUNT_KEY_FILE)",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the token to this .env file",
)
def generate_token(key_file: Optional[Path], env_file: Optional[Path]) -> None:
    """Generate an access token from a service account key."""
    settings = get_settings().google
    key_path = key_file or Path(settings.service_account_key_file)

    if not key_path.exists():
        click.echo(f"Service account key file not found: {key_path}", err=True)
        click.echo(
            "Set GOOGLE_SERVICE_ACCOUNT_KEY_FILE or pass --key-file. Keys are created in "
            "Google Cloud Console > IAM & Admin > Service Accounts.",
            err=True,
        )
        sys.exit(1)

    credentials = service_account.Credentials.from_service_account_file(
        str(key_path), scopes=settings.scopes
    )
    try:
        credentials.refresh(GoogleAuthRequest())
    except Exception as e:
        click.echo(f"Error generating access token: {e}", err=True)
        sys.exit(1)

    _emit_token(credentials.token, credentials.expiry, env_file)


@main.command("refresh-token")
@click.option("--client-id", envvar="GOOGLE_CLIENT_ID", help="OAuth client ID")
@click.option("--client-secret", envvar="GOOGLE_CLIENT_SECRET", help="OAuth client secret")
@click.option("--refresh-token", "refresh_token", envvar="GOOGLE_REFRESH_TOKEN", help="OAuth refresh token")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the token to this .env file",
)
def refresh_token_command(
    client_id: Optional[str],
    client_secret: Optional[str],
    refresh_token: Optional[str],
    env_file: Optional[Path]
) -> None:
    """Exchange an OAuth refresh token for a new access token."""
    if not client_id or not client_secret or not refresh_token:
        click.echo("Missing OAuth2 credentials. Set these environment variables:", err=True)
        click.echo("  GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REFRESH_TOKEN", err=True)
        click.echo("Client credentials come from https://console.cloud.google.com/apis/credentials", err=True)
        sys.exit(1)

    settings = get_settings().google
    credentials = Credentials(
        token=None,
        refresh_token=refresh_token,
        client_id=client_id,
        client_secret=client_secret,
        token_uri=settings.token_uri,
        scopes=settings.scopes,
    )
    try:
        credentials.refresh(GoogleAuthRequest())
    except Exception as e:
        click.echo(f"Error refreshing access token: {e}", err=True)
        sys.exit(1)

    _emit_token(credentials.token, credentials.expiry, env_file)


@main.command("check-token")
@click.option("--token", envvar=ENV_VAR_NAME, help="Access token to check")
def check_token(token: Optional[str]) -> None:
    """Check that an access token can list Drive files."""
    if not token:
        click.echo(f"No token given. Pass --token or set {ENV_VAR_NAME}.", err=True)
        sys.exit(1)

    if CredentialStore().validate(token):
        click.echo("Authentication successful: the access token is valid.")
    else:
        click.echo("Authentication failed: check the token and its scopes.", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
