"""Command-line interface for google-mcp."""

import asyncio
import logging
import sys

import click

from google_mcp.__version__ import __version__


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Google Workspace MCP - OAuth session management.

    Manages the Google OAuth session shared by the Workspace tools
    (Docs, Sheets, Drive, Tasks, Calendar, Gmail, Contacts, Slides,
    YouTube, Forms, Chat and Meet).

    Client credentials are read from GOOGLE_CREDENTIALS_JSON or the
    credentials.json file shown by 'google-mcp paths'.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option(
    "--timeout",
    type=float,
    default=300.0,
    show_default=True,
    help="Seconds to wait for the browser redirect",
)
@click.option("--no-browser", is_flag=True, help="Print the authorization URL without opening it")
def setup(timeout: float, no_browser: bool) -> None:
    """Set up Google Workspace OAuth authentication.

    This will:
    1. Restore and refresh a stored session if one exists
    2. Otherwise open the browser for the OAuth2 consent flow
    3. Store tokens with owner-only permissions
    """
    from google_mcp.auth import SessionManager

    session = SessionManager(auth_timeout=timeout, open_browser=not no_browser)

    click.echo("Starting OAuth authentication flow...")
    if asyncio.run(session.initialize_with_auth()):
        click.echo("✓ Authentication successful!")
        click.echo(f"Token stored at: {session.token_path}")
        return

    if session.get_client() is None:
        click.echo("❌ Error: OAuth client credentials required")
        click.echo("")
        click.echo(f"Place your credentials file at: {session.credentials_path}")
        click.echo("Or set GOOGLE_CREDENTIALS_JSON to its contents.")
    else:
        click.echo("❌ Authentication failed. See the log above for details.")
    sys.exit(1)


@main.command("auth-url")
def auth_url() -> None:
    """Print the authorization URL for manual consent."""
    from google_mcp.auth import SessionManager

    session = SessionManager()
    asyncio.run(session.initialize())

    url = session.get_auth_url()
    if url is None:
        click.echo("❌ Error: OAuth client credentials required")
        sys.exit(1)
    click.echo(url)


@main.command("auth-code")
@click.argument("code")
def auth_code(code: str) -> None:
    """Exchange an authorization CODE obtained out-of-band."""
    from google_mcp.auth import SessionManager

    session = SessionManager()
    if not asyncio.run(session.set_auth_code(code)):
        click.echo("❌ Could not exchange authorization code")
        sys.exit(1)

    click.echo("✓ Authentication successful!")
    click.echo(f"Token stored at: {session.token_path}")


@main.command()
def logout() -> None:
    """Delete stored tokens and revoke the grant."""
    from google_mcp.auth import SessionManager

    session = SessionManager()
    # No initialize(): an expired grant is revoked as stored, not refreshed
    asyncio.run(session.logout())
    click.echo("✓ Logged out.")


@main.command()
def paths() -> None:
    """Show where credentials and tokens are stored."""
    from google_mcp.auth import CredentialStore

    store = CredentialStore()
    click.echo(f"Config directory:  {store.paths.config_dir}")
    click.echo(f"Data directory:    {store.paths.data_dir}")
    click.echo(f"Credentials file:  {store.credentials_path}")
    click.echo(f"Token file:        {store.token_path}")


@main.command()
def doctor() -> None:
    """Check credential and token status.

    Verifies:
    1. OAuth client credentials configured
    2. Token validity
    """
    from google_mcp.auth import CredentialStore, TokenStatus

    store = CredentialStore()

    click.echo("Google Workspace MCP Status:")
    click.echo("")

    click.echo("Credentials:")
    click.echo(f"  Credentials file: {store.credentials_path}")
    if store.load_client_credentials() is None:
        click.echo("  ❌ No valid OAuth client credentials")
        click.echo("")
        click.echo("Download credentials from https://console.cloud.google.com/apis/credentials")
        sys.exit(1)
    click.echo("  ✓ Client credentials found")
    click.echo("")

    status = store.get_token_status()

    click.echo("Authentication:")
    click.echo(f"  Token file: {store.token_path}")
    if store.tokens_managed_externally:
        click.echo("  Tokens supplied via GOOGLE_TOKENS_JSON")

    if status == TokenStatus.MISSING:
        click.echo("  ❌ Not authenticated")
        click.echo("")
        click.echo("Run 'google-mcp setup' to authenticate.")
        sys.exit(1)
    elif status == TokenStatus.INVALID:
        click.echo("  ❌ Token file corrupted")
        click.echo("")
        click.echo("Run 'google-mcp setup' to re-authenticate.")
        sys.exit(1)
    elif status == TokenStatus.EXPIRED:
        click.echo("  ⚠️  Token expired (will be refreshed on next start)")
    else:
        click.echo("  ✓ Authenticated")

    click.echo("")
    click.echo("✓ Ready to use!")


if __name__ == "__main__":
    main()
