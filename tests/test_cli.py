"""Tests for the qurl command line."""

import json

import httpx
import pytest
from click.testing import CliRunner

from qurl import __version__
from qurl.cli import main as cli_main
from qurl.cli.main import cli, docs_method, split_methods
from qurl.config import RequestConfig


class Backend:
    def __init__(self, body="pong"):
        self.body = body
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(200, headers={"X-Served-By": "mock"}, content=self.body.encode())


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("QURL_OPENAPI", "OPENAPI_URL", "QURL_SERVER", "QURL_MCP_DESCRIPTION", "QURL_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend(monkeypatch):
    """Route every client the CLI creates through a mock transport."""
    backend = Backend()
    monkeypatch.setattr(
        cli_main, "create_client", lambda *args, **kwargs: httpx.Client(transport=httpx.MockTransport(backend))
    )
    return backend


@pytest.fixture
def runner():
    return CliRunner()


class TestHelpers:
    def test_split_methods(self):
        assert split_methods(("get", "POST,put", " ,delete")) == ["GET", "POST", "PUT", "DELETE"]

    def test_docs_method_defaults_to_any(self):
        assert docs_method(RequestConfig()) == "ANY"

    def test_docs_method_explicit(self):
        assert docs_method(RequestConfig(methods=["POST"], methods_explicit=True)) == "POST"
        assert docs_method(RequestConfig(methods=["GET", "POST"], methods_explicit=True)) == "GET,POST"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_get_prints_body(self, runner, backend):
        result = runner.invoke(cli, ["--server", "https://api.example.com", "/ping"])
        assert result.exit_code == 0, result.output
        assert result.output == "pong"
        assert str(backend.requests[0].url) == "https://api.example.com/ping"

    def test_server_from_env(self, runner, backend, monkeypatch):
        monkeypatch.setenv("QURL_SERVER", "https://env.example.com")
        result = runner.invoke(cli, ["/ping"])
        assert result.exit_code == 0, result.output
        assert backend.requests[0].url.host == "env.example.com"

    def test_method_headers_query_body(self, runner, backend):
        args = [
            "-X", "post",
            "-H", "X-Trace: abc",
            "-q", "b=2",
            "-q", "a=1",
            "-d", "name=rex",
            "https://api.example.com/pets",
        ]
        result = runner.invoke(cli, args)
        assert result.exit_code == 0, result.output

        sent = backend.requests[0]
        assert sent.method == "POST"
        assert sent.headers["X-Trace"] == "abc"
        assert str(sent.url) == "https://api.example.com/pets?a=1&b=2"
        assert sent.content == b"name=rex"
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"

    def test_include_headers(self, runner, backend):
        result = runner.invoke(cli, ["-i", "https://api.example.com/ping"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("HTTP/1.1 200 OK\n")
        assert "x-served-by: mock\n" in result.output
        assert result.output.endswith("\n\npong")

    def test_spec_server_is_used(self, runner, backend, petstore_file):
        result = runner.invoke(cli, ["--openapi", str(petstore_file), "/pets"])
        assert result.exit_code == 0, result.output
        sent = backend.requests[0]
        assert str(sent.url) == "https://petstore.example.com/v1/pets"
        assert sent.headers["Accept"] == "application/json, application/xml"

    def test_multiple_methods_need_docs(self, runner, backend):
        result = runner.invoke(cli, ["-X", "GET", "-X", "POST", "--server", "https://api.example.com", "/x"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "multiple HTTP methods" in result.output
        assert backend.requests == []

    def test_missing_path(self, runner, backend):
        result = runner.invoke(cli, ["--server", "https://api.example.com"])
        assert result.exit_code == 1
        assert "path is required" in result.output

    def test_no_server(self, runner, backend):
        result = runner.invoke(cli, ["/ping"])
        assert result.exit_code == 1
        assert "no server URL available" in result.output

    def test_invalid_method(self, runner, backend):
        result = runner.invoke(cli, ["-X", "FETCH", "--server", "https://api.example.com", "/x"])
        assert result.exit_code == 1
        assert "invalid HTTP method" in result.output


# ---------------------------------------------------------------------------
# Documentation
# ---------------------------------------------------------------------------


class TestDocs:
    def test_docs_require_openapi(self, runner, backend):
        result = runner.invoke(cli, ["--docs"])
        assert result.exit_code == 1
        assert "OpenAPI URL is required" in result.output

    def test_index(self, runner, backend, petstore_file):
        result = runner.invoke(cli, ["--docs", "--openapi", str(petstore_file)])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("Petstore v1.2.0\n")
        assert "/pets/{petId}" in result.output
        assert backend.requests == []

    def test_single_operation(self, runner, backend, petstore_file):
        result = runner.invoke(cli, ["--docs", "-X", "POST", "--openapi", str(petstore_file), "/pets"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("POST /pets\n")

    def test_several_methods(self, runner, backend, petstore_file, monkeypatch):
        monkeypatch.setenv("QURL_OPENAPI", str(petstore_file))
        result = runner.invoke(cli, ["--docs", "-X", "GET,DELETE", "/pets/{petId}"])
        assert result.exit_code == 0, result.output
        assert "  GET  Get a pet" in result.output
        assert "  DELETE  Delete a pet" in result.output

    def test_no_match(self, runner, backend, petstore_file):
        result = runner.invoke(cli, ["--docs", "--openapi", str(petstore_file), "/nope"])
        assert result.exit_code == 0
        assert result.output == "No endpoints found matching the specified path and method\n"


# ---------------------------------------------------------------------------
# MCP
# ---------------------------------------------------------------------------


class TestMCP:
    def test_requires_openapi(self, runner, backend):
        result = runner.invoke(cli, ["--mcp"], input="")
        assert result.exit_code == 1
        assert "OpenAPI URL is required for MCP server" in result.output

    def test_serves_stdin(self, runner, backend, petstore_file):
        messages = [
            {"jsonrpc": "2.0", "id": 1, "method": "initialize"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "discover", "arguments": {}}},
            {
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": "execute", "arguments": {"path": "/pets", "method": "DELETE"}},
            },
        ]
        stdin = "".join(json.dumps(m) + "\n" for m in messages)
        result = runner.invoke(
            cli,
            ["--mcp", "--mcp-desc", "Pets", "-X", "GET", "-H", "X-Key: k", "--openapi", str(petstore_file), "/pets"],
            input=stdin,
        )
        assert result.exit_code == 0, result.output

        responses = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
        assert [r["id"] for r in responses] == [1, 2, 3]
        assert responses[0]["result"]["serverInfo"]["description"] == "Pets"
        assert "  GET  List pets" in responses[1]["result"]["content"][0]["text"]
        assert responses[2]["error"]["message"] == "Method DELETE not allowed. Allowed methods: [GET]"

    def test_execute_inherits_cli_headers(self, runner, backend, petstore_file):
        message = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tools/call",
            "params": {"name": "execute", "arguments": {"path": "/pets"}},
        }
        result = runner.invoke(
            cli,
            ["--mcp", "-H", "X-Key: k", "--openapi", str(petstore_file)],
            input=json.dumps(message) + "\n",
        )
        assert result.exit_code == 0, result.output
        assert backend.requests[0].headers["X-Key"] == "k"
        assert str(backend.requests[0].url) == "https://petstore.example.com/v1/pets"
