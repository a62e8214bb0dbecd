"""
qurl OpenAPI Viewer - Concrete spec provider backed by an OpenAPI document.

The document is fetched on first use and cached for the lifetime of the
viewer. Remote documents go through the same httpx client (and the same
authentication) as ordinary requests, so ``lambda://`` and SigV4-protected
specs work too.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional
from urllib.parse import unquote, urlsplit

import httpx

from qurl.errors import ErrorKind, QurlError, new, wrap
from qurl.http.auth import Authenticator
from qurl.http.transport import DEFAULT_TIMEOUT, create_client
from qurl.log import component_logger
from qurl.openapi.base import NO_ENDPOINTS_MESSAGE, SpecProvider
from qurl.openapi.display import Displayer
from qurl.openapi.document import OpenAPIDocument

REMOTE_SCHEMES = ("http", "https", "lambda")
ABSOLUTE_SERVER_PREFIXES = ("http://", "https://", "lambda://")


def file_uri_path(spec_url: str) -> str:
    """
    Filesystem path for a ``file://`` URI.

    ``file://host/path`` treats ``host/path`` as a relative path, and
    relative paths resolve against the current directory.
    """
    parts = urlsplit(spec_url)
    path = unquote(parts.path)
    if parts.netloc:
        path = parts.netloc + path
    return os.path.abspath(path)


class OpenAPIViewer(SpecProvider):
    """Spec provider that loads an OpenAPI document from a URL or path."""

    def __init__(
        self,
        spec_url: str,
        client: Optional[httpx.Client] = None,
        authenticator: Optional[Authenticator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.spec_url = spec_url
        self._client = client
        self._authenticator = authenticator
        self._logger = component_logger(logger, "openapi")
        self._document: Optional[OpenAPIDocument] = None

    # ── Loading ──────────────────────────────────────────────────────────

    def load(self, timeout: Optional[float] = None) -> OpenAPIDocument:
        """Return the document, fetching it on first call."""
        if self._document is None:
            if not self.spec_url:
                raise new(ErrorKind.CONFIG, "no OpenAPI URL configured")
            try:
                data = self._fetch(timeout)
                self._document = OpenAPIDocument.from_bytes(data)
            except QurlError as exc:
                raise wrap(exc, ErrorKind.OPENAPI, "loading OpenAPI spec").with_context("openapi_url", self.spec_url) from exc
            self._logger.debug("OpenAPI spec loaded", extra={"openapi_url": self.spec_url})
        return self._document

    def _fetch(self, timeout: Optional[float]) -> bytes:
        try:
            scheme = urlsplit(self.spec_url).scheme.lower()
        except ValueError as exc:
            raise wrap(exc, ErrorKind.VALIDATION, "parsing URL") from exc

        if scheme == "file":
            return self._read_file(file_uri_path(self.spec_url))
        if scheme in REMOTE_SCHEMES:
            return self._fetch_remote(timeout)
        # Windows drive letters parse as a one-letter scheme.
        return self._read_file(self.spec_url)

    def _read_file(self, path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as exc:
            raise wrap(exc, ErrorKind.OPENAPI, f"reading file {path}") from exc

    def _fetch_remote(self, timeout: Optional[float]) -> bytes:
        if self._client is None:
            self._client = create_client()
        request = httpx.Request("GET", self.spec_url)
        request.extensions["timeout"] = httpx.Timeout(timeout or DEFAULT_TIMEOUT).as_dict()
        if self._authenticator is not None:
            self._authenticator.apply(request, self.spec_url)

        try:
            response = self._client.send(request)
        except httpx.HTTPError as exc:
            raise wrap(exc, ErrorKind.NETWORK, "fetching OpenAPI spec") from exc

        if response.status_code != 200:
            raise new(ErrorKind.OPENAPI, f"unexpected status code: {response.status_code}")
        return response.content

    # ── SpecProvider ─────────────────────────────────────────────────────

    def _spec_origin(self) -> str:
        parts = urlsplit(self.spec_url)
        if not parts.scheme or not parts.netloc:
            raise new(ErrorKind.OPENAPI, "spec URL has no scheme and host").with_context("openapi_url", self.spec_url)
        return f"{parts.scheme}://{parts.netloc}"

    def absolute_url(self, server_url: str) -> str:
        if not server_url.startswith("/"):
            server_url = "/" + server_url
        return self._spec_origin() + server_url

    def base_url(self, timeout: Optional[float] = None) -> str:
        servers = self.load(timeout).servers
        if servers and servers[0]:
            server_url = servers[0]
            if server_url.startswith(ABSOLUTE_SERVER_PREFIXES):
                return server_url
            try:
                return self.absolute_url(server_url)
            except QurlError as exc:
                raise wrap(exc, ErrorKind.OPENAPI, "server URL is relative") from exc

        try:
            return self._spec_origin()
        except QurlError as exc:
            raise wrap(exc, ErrorKind.OPENAPI, "no servers defined") from exc

    def get_servers(self) -> List[str]:
        return self.load().servers

    def set_headers(
        self,
        request: httpx.Request,
        path: str,
        method: str,
        timeout: Optional[float] = None,
    ) -> None:
        """Set ``Accept`` from the exactly matching operation's responses."""
        document = self.load(timeout)
        match = next(
            (op for op in document.operations(path, method) if op.path == path and op.method == method.upper()),
            None,
        )
        if match is None:
            return
        accept = document.accept_types(match)
        if accept:
            request.headers["Accept"] = ", ".join(accept)

    def view(self, path: str, method: str, timeout: Optional[float] = None) -> str:
        show_index = path.endswith("/")
        if show_index:
            path = path[:-1] + "*"

        document = self.load(timeout)
        operations = document.operations(path, method)
        if not operations:
            return NO_ENDPOINTS_MESSAGE

        displayer = Displayer(document)
        if show_index or path in ("", "*"):
            return displayer.render_index(operations)

        exact = [op for op in operations if op.path == path]
        if len(exact) == 1:
            return displayer.render_operation(exact[0])
        if exact:
            return displayer.render_index(exact)
        return displayer.render_index(operations)
