"""Response handling: print for the CLI, capture for MCP."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Optional, TextIO
from urllib.parse import urlsplit

import httpx

from qurl.config import RequestConfig
from qurl.errors import ErrorKind, wrap
from qurl.log import component_logger


@dataclass
class ResponseData:
    """Captured response for callers that format output themselves."""

    body: str
    headers: httpx.Headers
    status_code: int


def status_line(response: httpx.Response) -> str:
    """``HTTP/1.1 200 OK`` style status line."""
    version = response.http_version or "HTTP/1.1"
    return f"{version} {response.status_code} {response.reason_phrase}".rstrip()


class ResponseHandler:
    """
    Reads a response body and emits exactly one output shape:

    - verbose: request/response trace on stderr, body on stdout
    - include headers: status line, headers, blank line, body on stdout
    - otherwise the body alone
    """

    def __init__(
        self,
        config: RequestConfig,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._out = out
        self._err = err
        self._logger = component_logger(logger, "response_handler")

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err or sys.stderr

    def _read_body(self, response: httpx.Response) -> str:
        try:
            response.read()
        except httpx.HTTPError as exc:
            self._logger.error("failed to read response body: %s", exc)
            raise wrap(exc, ErrorKind.NETWORK, "failed to read response body") from exc
        body = response.text
        self._logger.debug(
            "response body read",
            extra={
                "status": response.status_code,
                "content_type": response.headers.get("Content-Type", ""),
                "body_length": len(response.content),
            },
        )
        return body

    def handle(self, response: httpx.Response, method: str, target_url: str) -> None:
        """Print the response according to the verbose/include flags."""
        body = self._read_body(response)

        if self._config.verbose:
            self._show_request_details(method, target_url, response)
            self._show_response_details(response)
        elif self._config.include_headers:
            self._show_response_headers(response)

        self.out.write(body)
        self.out.flush()

    def handle_for_mcp(self, response: httpx.Response) -> ResponseData:
        """Return body, headers and status without printing anything."""
        body = self._read_body(response)
        return ResponseData(body=body, headers=response.headers, status_code=response.status_code)

    # ── Output shapes ────────────────────────────────────────────────────

    def _show_request_details(self, method: str, target_url: str, response: httpx.Response) -> None:
        err = self.err
        err.write(f"> {method} {target_url}\n")
        host = urlsplit(target_url).netloc
        if host:
            err.write(f"> Host: {host}\n")
        try:
            request = response.request
        except RuntimeError:
            request = None
        if request is not None:
            for name, value in request.headers.multi_items():
                if name.lower() == "host":
                    continue
                err.write(f"> {name}: {value}\n")
        err.write(">\n")

    def _show_response_details(self, response: httpx.Response) -> None:
        err = self.err
        err.write(f"< {status_line(response)}\n")
        for name, value in response.headers.multi_items():
            err.write(f"< {name}: {value}\n")
        err.write("<\n")
        err.flush()

    def _show_response_headers(self, response: httpx.Response) -> None:
        out = self.out
        out.write(f"{status_line(response)}\n")
        for name, value in response.headers.multi_items():
            out.write(f"{name}: {value}\n")
        out.write("\n")
