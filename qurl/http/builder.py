"""Request construction with layered headers."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from qurl.config import RequestConfig
from qurl.errors import ErrorKind, QurlError, wrap
from qurl.http.auth import Authenticator
from qurl.http.query import parse_header
from qurl.log import component_logger
from qurl.openapi.base import SpecProvider

USER_AGENT = "qurl"
HEADER_HINT_TIMEOUT = 5.0


def detect_content_type(body: str) -> str:
    """JSON for ``{...}`` / ``[...]`` bodies, form encoding for anything else."""
    trimmed = body.strip()
    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        return "application/json"
    return "application/x-www-form-urlencoded"


class RequestBuilder:
    """
    Builds outbound requests.

    Header layers are applied in a fixed order and each may override the
    previous one:

    1. ``User-Agent``
    2. OpenAPI hints (``Accept``), best-effort
    3. authentication
    4. user ``-H`` headers, which always win
    5. ``Content-Type`` detection if nothing set one
    """

    def __init__(
        self,
        config: RequestConfig,
        spec: Optional[SpecProvider] = None,
        authenticator: Optional[Authenticator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._spec = spec
        self._logger = component_logger(logger, "request_builder")
        self._auth = authenticator or Authenticator(config, logger=logger)

    def build(self, method: str, target_url: str, original_path: str) -> httpx.Request:
        """
        Create a fully-configured request.

        Raises:
            QurlError: VALIDATION for an unusable URL, AUTH when signing fails.
        """
        log_extra = {"method": method, "target_url": target_url}
        body = self._config.body
        content = body.encode("utf-8") if body else None

        try:
            request = httpx.Request(method, target_url, content=content)
        except (httpx.InvalidURL, ValueError, TypeError) as exc:
            raise (
                wrap(exc, ErrorKind.VALIDATION, "failed to create HTTP request")
                .with_context("method", method)
                .with_context("url", target_url)
            ) from exc
        if content:
            self._logger.debug("request body added", extra={**log_extra, "body_length": len(content)})

        request.headers["User-Agent"] = USER_AGENT

        if self._spec is not None and original_path:
            try:
                self._spec.set_headers(request, original_path, method, timeout=HEADER_HINT_TIMEOUT)
            except Exception as exc:
                # Header hints are optional; the request goes out without them.
                self._logger.warning("could not set headers from OpenAPI spec: %s", exc, extra=log_extra)
            else:
                self._logger.debug("OpenAPI headers applied", extra=log_extra)

        try:
            self._auth.apply(request, target_url)
        except QurlError as exc:
            raise wrap(exc, ErrorKind.AUTH, "failed to apply authentication") from exc

        applied = 0
        for header in self._config.headers:
            parsed = parse_header(header)
            if parsed is None:
                continue
            name, value = parsed
            request.headers[name] = value
            applied += 1
        if applied:
            self._logger.debug("custom headers applied", extra={**log_extra, "custom_headers": applied})

        if body and "Content-Type" not in request.headers:
            content_type = detect_content_type(body)
            request.headers["Content-Type"] = content_type
            self._logger.debug("content type auto-detected", extra={**log_extra, "content_type": content_type})

        return request
