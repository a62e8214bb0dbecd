"""URL resolution: turn a path or URL plus configuration into the final target."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from qurl.config import RequestConfig
from qurl.errors import ErrorKind, new, wrap
from qurl.log import component_logger
from qurl.openapi.base import SpecProvider


def _split(value: str, message: str, context_key: str) -> SplitResult:
    try:
        return urlsplit(value)
    except ValueError as exc:
        raise wrap(exc, ErrorKind.VALIDATION, message).with_context(context_key, value) from exc


def is_absolute(url: str) -> bool:
    """True when the URL has both a scheme and a host."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


class URLResolver:
    """
    Resolves request targets.

    Base URL priority:
    1. ``config.server`` (absolute URL, server index, or spec-anchored hint)
    2. the spec provider's base URL
    3. otherwise a CONFIG error
    """

    def __init__(
        self,
        config: RequestConfig,
        spec: Optional[SpecProvider] = None,
        logger: Optional[logging.Logger] = None,
        timeout: Optional[float] = None,
    ):
        self._config = config
        self._spec = spec
        self._timeout = timeout
        self._logger = component_logger(logger, "url_resolver")

    def resolve(self, path: str) -> str:
        """
        Return the fully-qualified URL for ``path``.

        Absolute URLs are returned unchanged so one-off requests to other
        hosts still work in an OpenAPI-configured session.
        """
        parsed = _split(path, "invalid URL/path", "path")
        if parsed.scheme and parsed.netloc:
            return path

        if self._config.server:
            base_url = self._resolve_server_url(self._config.server)
        elif self._spec is not None:
            base_url = self._spec_base_url("failed to get base URL from OpenAPI spec")
        else:
            raise (
                new(ErrorKind.CONFIG, "no server URL available")
                .with_context("path", path)
                .with_context("suggestion", "use --server flag or provide OpenAPI URL")
            )

        target = join_url(base_url, path)
        self._logger.debug("URL resolved", extra={"path": path, "target_url": target})
        return target

    # ── Server selection ─────────────────────────────────────────────────

    def _resolve_server_url(self, server: str) -> str:
        if len(server) == 1 and "0" <= server <= "9":
            return self._server_by_index(int(server))

        if "://" not in server and self._spec is not None:
            # A bare host or path is only meaningful relative to the spec
            return self._spec_base_url("failed to resolve relative server URL from OpenAPI spec")

        parsed = _split(server, "invalid server URL", "server_url")
        if not parsed.scheme or not parsed.netloc:
            raise new(
                ErrorKind.VALIDATION, "server URL must be complete (e.g., https://example.com)"
            ).with_context("server_url", server)
        return server

    def _server_by_index(self, index: int) -> str:
        if self._spec is None:
            raise (
                new(ErrorKind.VALIDATION, "server index requires OpenAPI specification")
                .with_context("index", index)
                .with_context("suggestion", "provide --openapi or pass a full server URL")
            )

        try:
            servers = self._spec.get_servers()
        except Exception as exc:
            raise wrap(exc, ErrorKind.OPENAPI, "failed to get servers from OpenAPI spec") from exc

        if index >= len(servers):
            raise (
                new(ErrorKind.VALIDATION, "server index out of range")
                .with_context("index", index)
                .with_context("available_servers", len(servers))
            )

        server_url = servers[index]
        if not server_url:
            raise new(ErrorKind.VALIDATION, "server entry has no URL").with_context("index", index)
        if not is_absolute(server_url):
            return self._spec.absolute_url(server_url)
        return server_url

    def _spec_base_url(self, message: str) -> str:
        try:
            return self._spec.base_url(timeout=self._timeout)
        except Exception as exc:
            raise wrap(exc, ErrorKind.OPENAPI, message) from exc


def join_url(base_url: str, path: str) -> str:
    """
    Append ``path`` to ``base_url``.

    A base with a non-trivial path keeps it (minus one trailing slash);
    otherwise the base path becomes ``path``. The base query is preserved.
    """
    base = _split(base_url, "invalid base URL", "base_url")
    if not path.startswith("/"):
        path = "/" + path

    if base.path not in ("", "/"):
        base_path = base.path[:-1] if base.path.endswith("/") else base.path
        new_path = base_path + path
    else:
        new_path = path
    return base._replace(path=new_path).geturl()
