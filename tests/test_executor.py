"""Tests for the request executor and its factory."""

import io

import httpx
import pytest

from conftest import StaticSpec
from qurl.config import RequestConfig
from qurl.errors import ErrorKind, QurlError
from qurl.http.executor import ExecutorFactory
from qurl.openapi.viewer import OpenAPIViewer


class Recorder:
    """MockTransport handler that records requests and replies with a canned response."""

    def __init__(self, status=200, body="ok", headers=None, error=None):
        self.status = status
        self.body = body
        self.headers = headers or {"Content-Type": "text/plain"}
        self.error = error
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return httpx.Response(self.status, headers=self.headers, content=self.body.encode())


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def client(recorder):
    with httpx.Client(transport=httpx.MockTransport(recorder)) as c:
        yield c


def executor_for(config, client, spec=None, out=None):
    return ExecutorFactory(out=out or io.StringIO(), err=io.StringIO()).create(config, client=client, spec=spec)


# ---------------------------------------------------------------------------
# execute
# ---------------------------------------------------------------------------


class TestExecute:
    def test_prints_body(self, client, recorder):
        out = io.StringIO()
        config = RequestConfig(server="https://api.example.com/v1")
        executor_for(config, client, out=out).execute("/users")

        assert out.getvalue() == "ok"
        assert str(recorder.requests[0].url) == "https://api.example.com/v1/users"

    def test_query_parameters_are_applied(self, client, recorder):
        config = RequestConfig(server="https://api.example.com", query_params=["b=2", "a=1"])
        executor_for(config, client).execute("/users")
        assert str(recorder.requests[0].url) == "https://api.example.com/users?a=1&b=2"

    def test_method_body_and_headers(self, client, recorder):
        config = RequestConfig(
            methods=["PUT"],
            server="https://api.example.com",
            body='{"name":"n"}',
            headers=["X-Custom: 1"],
        )
        executor_for(config, client).execute("/users/1")

        sent = recorder.requests[0]
        assert sent.method == "PUT"
        assert sent.content == b'{"name":"n"}'
        assert sent.headers["X-Custom"] == "1"
        assert sent.headers["Content-Type"] == "application/json"

    def test_absolute_url_ignores_server(self, client, recorder):
        config = RequestConfig(server="https://api.example.com")
        executor_for(config, client).execute("https://other.example.com/ping")
        assert recorder.requests[0].url.host == "other.example.com"

    def test_uses_spec_base_url(self, client, recorder):
        executor_for(RequestConfig(), client, spec=StaticSpec(base="https://spec.example.com/api")).execute("/x")
        assert str(recorder.requests[0].url) == "https://spec.example.com/api/x"

    def test_transport_failure_is_network_error(self, client, recorder):
        recorder.error = httpx.ConnectError("connection refused")
        config = RequestConfig(server="https://api.example.com")
        with pytest.raises(QurlError) as exc_info:
            executor_for(config, client).execute("/users")

        err = exc_info.value
        assert err.kind == ErrorKind.NETWORK
        assert err.context["url"] == "https://api.example.com/users"
        assert err.context["method"] == "GET"
        assert err.context["duration"].endswith("s")

    def test_resolution_failure_sends_nothing(self, client, recorder):
        with pytest.raises(QurlError) as exc_info:
            executor_for(RequestConfig(), client).execute("/users")
        assert exc_info.value.kind == ErrorKind.CONFIG
        assert recorder.requests == []


class TestExecuteForMcp:
    def test_returns_response_data(self, client, recorder):
        recorder.status = 404
        recorder.body = "not here"
        data = executor_for(RequestConfig(server="https://api.example.com"), client).execute_for_mcp("/x")
        assert data.status_code == 404
        assert data.body == "not here"
        assert data.headers["Content-Type"] == "text/plain"


# ---------------------------------------------------------------------------
# show_docs
# ---------------------------------------------------------------------------


class TestShowDocs:
    def test_writes_view_with_trailing_newline(self, client):
        out = io.StringIO()
        spec = StaticSpec(view_text="GET /users")
        executor_for(RequestConfig(), client, spec=spec, out=out).show_docs("/users", "GET")
        assert out.getvalue() == "GET /users\n"
        assert spec.view_calls[0][:2] == ("/users", "GET")

    def test_defaults_to_all_paths_and_methods(self, client):
        spec = StaticSpec()
        executor_for(RequestConfig(), client, spec=spec).show_docs("", "")
        assert spec.view_calls[0][:2] == ("*", "ANY")

    def test_requires_spec(self, client):
        with pytest.raises(QurlError) as exc_info:
            executor_for(RequestConfig(), client).show_docs("/users", "GET")
        assert exc_info.value.kind == ErrorKind.CONFIG

    def test_view_failure_is_openapi_error(self, client):
        spec = StaticSpec(fail=RuntimeError("broken"))
        with pytest.raises(QurlError) as exc_info:
            executor_for(RequestConfig(), client, spec=spec).show_docs("/users", "GET")
        assert exc_info.value.kind == ErrorKind.OPENAPI


class TestExecutorFactory:
    def test_creates_viewer_from_openapi_url(self, client):
        executor = executor_for(RequestConfig(openapi_url="https://api.example.com/openapi.yaml"), client)
        assert isinstance(executor.spec, OpenAPIViewer)

    def test_shares_given_spec(self, client):
        spec = StaticSpec()
        executor = executor_for(RequestConfig(openapi_url="https://x.example.com/o.yaml"), client, spec=spec)
        assert executor.spec is spec

    def test_no_spec_without_openapi_url(self, client):
        assert executor_for(RequestConfig(), client).spec is None
