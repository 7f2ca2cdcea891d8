"""
Tests for the oobwatch command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from oobwatch.cli.main import _watch, cli
from oobwatch.client.builder import DEFAULT_SERVERS, ClientBuilder
from oobwatch.client.transport import TransportResponse
from oobwatch.core.exceptions import ServerRejectionError, TransportError


class TestCLI:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "poll" in result.output
        assert "keygen" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_servers(self):
        result = CliRunner().invoke(cli, ["servers"])
        assert result.exit_code == 0
        assert result.output.split() == list(DEFAULT_SERVERS)

    def test_keygen(self):
        result = CliRunner().invoke(cli, ["keygen", "--key-size", "1024", "-s", "example-oast.test"])
        assert result.exit_code == 0
        assert "Correlation ID:" in result.output
        assert ".example-oast.test" in result.output
        assert "-----BEGIN PUBLIC KEY-----" in result.output

    def test_keygen_rejects_bad_size(self):
        result = CliRunner().invoke(cli, ["keygen", "--key-size", "1000"])
        assert result.exit_code == 1

    def test_poll_reports_every_config_error(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(
            cli, ["poll", "--server", "ftp://x", "--key-size", "1000", "--timeout", "0"]
        )
        assert result.exit_code == 1
        assert "scheme" in result.output
        assert "key size" in result.output
        assert "timeout" in result.output


def _watch_builder(transport) -> ClientBuilder:
    return (
        ClientBuilder()
        .with_server("example-oast.test")
        .with_rsa_key_size(1024)
        .with_transport(transport)
    )


def _ack() -> TransportResponse:
    return TransportResponse(status=200, body=json.dumps({"correlation-id-ack": True}))


class TestWatch:
    @pytest.mark.asyncio
    async def test_transient_poll_failure_keeps_watching(self, stub_transport, capsys):
        stub_transport.queue(_ack(), TransportError("connection reset"))

        await _watch(_watch_builder(stub_transport), interval=0, count=3, as_json=False)

        assert stub_transport.paths() == ["register", "poll", "poll", "poll", "deregister"]
        assert stub_transport.closed
        captured = capsys.readouterr()
        assert "Poll failed: connection reset" in captured.err
        assert "Deregistered" in captured.out

    @pytest.mark.asyncio
    async def test_rejected_poll_stops_and_deregisters(self, stub_transport):
        stub_transport.queue(_ack(), TransportResponse(status=401, body="bad token"))

        with pytest.raises(ServerRejectionError):
            await _watch(_watch_builder(stub_transport), interval=0, count=3, as_json=False)

        assert stub_transport.paths() == ["register", "poll", "deregister"]
        assert stub_transport.closed
