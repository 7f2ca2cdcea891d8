"""
oobwatch CLI Main Entry Point

Command-line interface for registering with an interaction server and watching
for out-of-band interactions.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from ..client import ClientBuilder, DEFAULT_SERVERS, InteractionLog, LogEntry, PollResult
from ..client.keys import KeyMaterial
from ..client.state import RegisteredClient
from ..core.config import AuthScheme, CryptoBackend, config_file_from_env, load_config
from ..core.exceptions import (
    ConfigurationError,
    OOBWatchException,
    ServerRejectionError,
    TransportError,
)
from ..core.logging import get_logger, setup_logging
from ..crypto import get_provider

logger = get_logger(__name__)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--log-level", default=None, help="Logging level (default from config)")
def cli(log_level: Optional[str]):
    """
    oobwatch - Out-of-band interaction client

    Register with an interactsh-compatible server and print the DNS, HTTP,
    SMTP, LDAP, FTP and SMB interactions it records.
    """
    setup_logging(log_level=log_level)


def _format_entry(entry: LogEntry, as_json: bool) -> str:
    if isinstance(entry, InteractionLog):
        if as_json:
            return entry.model_dump_json(by_alias=True, exclude_none=True)
        source = entry.remote_address or "unknown"
        line = f"[{entry.timestamp.isoformat()}] {entry.protocol.value.upper()} from {source}"
        if entry.q_type is not None:
            line += f" ({entry.q_type.value} {entry.full_id})"
        elif entry.full_id:
            line += f" ({entry.full_id})"
        return line
    return entry.log_entry


def _print_result(result: PollResult, as_json: bool) -> None:
    for entry in result:
        click.echo(_format_entry(entry, as_json))
    for error in result.errors:
        click.echo(f"✗ {error}", err=True)


async def _watch(builder: ClientBuilder, interval: float, count: int, as_json: bool) -> None:
    client = builder.build()
    transport = client.config.transport
    try:
        registered: RegisteredClient = await client.register()
        click.echo(f"✓ Registered with {client.server_url}")
        click.echo(f"  Interaction host: {registered.interaction_fqdn}")

        try:
            polls = 0
            while count == 0 or polls < count:
                try:
                    result = await registered.poll()
                except (TransportError, ServerRejectionError) as e:
                    if not e.retryable:
                        raise
                    logger.warning(f"Poll failed, retrying: {e}")
                    click.echo(f"✗ Poll failed: {e.message}", err=True)
                else:
                    _print_result(result, as_json)
                polls += 1
                if count == 0 or polls < count:
                    await asyncio.sleep(interval)
        finally:
            await registered.deregister()
            click.echo("✓ Deregistered")
    finally:
        await transport.close()


@cli.command("poll")
@click.option("--server", "-s", default=None, help="Server host or URL (random public server if unset)")
@click.option("--token", "-t", default=None, help="Auth token for protected servers")
@click.option(
    "--token-scheme",
    type=click.Choice([s.value for s in AuthScheme]),
    default=None,
    help="How the token is sent",
)
@click.option("--key-size", type=int, default=None, help="RSA key size in bits")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds")
@click.option("--verify-ssl/--no-verify-ssl", default=None, help="Verify the server certificate")
@click.option("--proxy", default=None, help="HTTP proxy URL")
@click.option(
    "--crypto-backend",
    type=click.Choice([b.value for b in CryptoBackend]),
    default=None,
    help="Crypto implementation",
)
@click.option("--raw", is_flag=True, help="Print raw JSON logs instead of parsed records")
@click.option("--json", "as_json", is_flag=True, help="Print parsed records as JSON")
@click.option("--interval", "-i", type=float, default=5.0, help="Seconds between polls")
@click.option("--count", "-n", type=int, default=0, help="Number of polls (0 = until interrupted)")
@click.option("--config", "config_file", type=click.Path(path_type=Path), default=None, help="Env file with OOBWATCH_ settings")
def poll(
    server: Optional[str],
    token: Optional[str],
    token_scheme: Optional[str],
    key_size: Optional[int],
    timeout: Optional[float],
    verify_ssl: Optional[bool],
    proxy: Optional[str],
    crypto_backend: Optional[str],
    raw: bool,
    as_json: bool,
    interval: float,
    count: int,
    config_file: Optional[Path],
):
    """
    Register, print the interaction host and poll until interrupted.

    Example:
        oobwatch poll -s oast.pro -i 2
    """
    config = load_config(config_file or config_file_from_env())
    builder = ClientBuilder.from_config(config)

    if server:
        builder.with_server(server)
    if token:
        builder.with_auth_token(token, token_scheme or config.auth_scheme)
    if key_size is not None:
        builder.with_rsa_key_size(key_size)
    if timeout is not None:
        builder.with_timeout(timeout)
    if verify_ssl is not None:
        builder.verify_ssl(verify_ssl)
    if proxy:
        builder.with_proxy(proxy)
    if crypto_backend:
        builder.with_crypto_backend(crypto_backend)
    if raw:
        builder.parse_logs(False)

    try:
        asyncio.run(_watch(builder, interval, count, as_json))
    except ConfigurationError as e:
        for error in e.errors:
            click.echo(f"✗ {error}", err=True)
        sys.exit(1)
    except OOBWatchException as e:
        click.echo(f"✗ {e.message}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)


@cli.command("keygen")
@click.option("--key-size", type=int, default=2048, help="RSA key size in bits")
@click.option(
    "--crypto-backend",
    type=click.Choice([b.value for b in CryptoBackend]),
    default=CryptoBackend.NATIVE.value,
    help="Crypto implementation",
)
@click.option("--server", "-s", default=DEFAULT_SERVERS[0], help="Server domain for the interaction host")
def keygen(key_size: int, crypto_backend: str, server: str):
    """
    Generate key material without registering and print its public parts.

    Example:
        oobwatch keygen --key-size 4096
    """
    try:
        key_material = KeyMaterial.generate(key_size, provider=get_provider(crypto_backend))
    except OOBWatchException as e:
        click.echo(f"✗ {e.message}", err=True)
        sys.exit(1)

    with key_material:
        click.echo(f"Correlation ID: {key_material.correlation_id}")
        click.echo(f"Interaction host: {key_material.interaction_fqdn(server)}")
        click.echo(key_material.public_key_pem.decode("ascii").rstrip())


@cli.command("servers")
def servers():
    """List the public interaction servers."""
    for server in DEFAULT_SERVERS:
        click.echo(server)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
