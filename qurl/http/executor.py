"""
qurl Executor - Orchestrates a single request from path to output.

The executor owns no policy of its own. It sequences the resolver, query
application, request builder, transport client and response handler, and
turns transport failures into NETWORK errors.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Optional, TextIO

import httpx

from qurl.config import RequestConfig
from qurl.errors import ErrorKind, new, wrap
from qurl.http.auth import Authenticator
from qurl.http.builder import RequestBuilder
from qurl.http.query import apply_query_parameters
from qurl.http.resolver import URLResolver
from qurl.http.response import ResponseData, ResponseHandler
from qurl.http.transport import DEFAULT_TIMEOUT, create_client
from qurl.log import component_logger
from qurl.openapi.base import SpecProvider
from qurl.openapi.viewer import OpenAPIViewer


class Executor:
    """Runs requests and documentation lookups for one configuration."""

    def __init__(
        self,
        config: RequestConfig,
        client: httpx.Client,
        spec: Optional[SpecProvider],
        resolver: URLResolver,
        builder: RequestBuilder,
        response_handler: ResponseHandler,
        logger: Optional[logging.Logger] = None,
        timeout: float = DEFAULT_TIMEOUT,
        out: Optional[TextIO] = None,
    ):
        self.config = config
        self.client = client
        self.spec = spec
        self.resolver = resolver
        self.builder = builder
        self.response_handler = response_handler
        self.timeout = timeout
        self._out = out
        self._logger = component_logger(logger, "executor")

    # ── Requests ─────────────────────────────────────────────────────────

    def execute(self, path: str) -> None:
        """Perform the request and print the response."""
        method = self.config.primary_method
        response, target_url = self._execute_request(path)
        try:
            self.response_handler.handle(response, method, target_url)
        finally:
            response.close()

    def execute_for_mcp(self, path: str) -> ResponseData:
        """Perform the request and return the captured response."""
        response, _ = self._execute_request(path)
        try:
            return self.response_handler.handle_for_mcp(response)
        finally:
            response.close()

    def _execute_request(self, path: str):
        method = self.config.primary_method
        self._logger.debug("executing request", extra={"method": method, "path": path})

        target_url = self.resolver.resolve(path)
        target_url = apply_query_parameters(target_url, self.config.query_params)
        request = self.builder.build(method, target_url, path)
        # Requests built outside the client carry no timeout of their own.
        request.extensions["timeout"] = httpx.Timeout(self.timeout).as_dict()

        start = time.monotonic()
        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            duration = time.monotonic() - start
            self._logger.error(
                "HTTP request failed: %s",
                exc,
                extra={"method": method, "url": target_url, "duration_ms": int(duration * 1000)},
            )
            raise (
                wrap(exc, ErrorKind.NETWORK, "HTTP request failed")
                .with_context("url", target_url)
                .with_context("method", method)
                .with_context("duration", f"{duration:.3f}s")
            ) from exc

        duration = time.monotonic() - start
        self._logger.debug(
            "response received",
            extra={
                "method": method,
                "url": target_url,
                "status": response.status_code,
                "duration_ms": int(duration * 1000),
            },
        )
        return response, target_url

    # ── Documentation ────────────────────────────────────────────────────

    def show_docs(self, path: str, method: str) -> None:
        """Print the OpenAPI view for ``path`` and ``method``."""
        if self.spec is None:
            raise new(ErrorKind.CONFIG, "OpenAPI specification required for documentation").with_context(
                "suggestion", "use --openapi flag or set QURL_OPENAPI environment variable"
            )

        path = path or "*"
        method = method or "ANY"
        try:
            text = self.spec.view(path, method, timeout=self.timeout)
        except Exception as exc:
            raise wrap(exc, ErrorKind.OPENAPI, "failed to view documentation") from exc

        out = self._out or sys.stdout
        out.write(text)
        if not text.endswith("\n"):
            out.write("\n")
        out.flush()


class ExecutorFactory:
    """
    Wires an Executor from a configuration.

    The MCP server calls ``create`` once per ``execute`` tool call with a
    derived configuration and shares the spec provider it already holds.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
    ):
        self._logger = logger
        self._out = out
        self._err = err

    def create(
        self,
        config: RequestConfig,
        client: Optional[httpx.Client] = None,
        spec: Optional[SpecProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Executor:
        client = client or create_client(timeout=timeout)
        authenticator = Authenticator(config, logger=self._logger)

        if spec is None and config.openapi_url:
            spec = OpenAPIViewer(config.openapi_url, client=client, authenticator=authenticator, logger=self._logger)

        return Executor(
            config=config,
            client=client,
            spec=spec,
            resolver=URLResolver(config, spec, logger=self._logger, timeout=timeout),
            builder=RequestBuilder(config, spec, authenticator=authenticator, logger=self._logger),
            response_handler=ResponseHandler(config, out=self._out, err=self._err, logger=self._logger),
            logger=self._logger,
            timeout=timeout,
            out=self._out,
        )
