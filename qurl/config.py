"""
qurl Configuration - Per-request settings and MCP access policy.

This module provides the ``RequestConfig`` model built once per CLI
invocation (or once per MCP ``execute`` call) and the immutable
``MCPAccessPolicy`` consulted by the MCP server on every tool call.
"""

import os
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from qurl.errors import ErrorKind, new

VALID_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
DEFAULT_SIGV4_SERVICE = "execute-api"


def openapi_url_from_env() -> str:
    """OpenAPI URL from ``QURL_OPENAPI``, falling back to ``OPENAPI_URL``."""
    return os.environ.get("QURL_OPENAPI") or os.environ.get("OPENAPI_URL") or ""


def server_from_env() -> str:
    return os.environ.get("QURL_SERVER", "")


def mcp_description_from_env() -> str:
    return os.environ.get("QURL_MCP_DESCRIPTION", "")


def _normalize_methods(methods: Any) -> List[str]:
    if not methods:
        return ["GET"]
    normalized = [str(m).strip().upper() for m in methods if str(m).strip()]
    return normalized or ["GET"]


class RequestConfig(BaseModel):
    """Settings for a single logical HTTP request."""

    methods: List[str] = Field(default_factory=lambda: ["GET"])
    path: str = ""
    headers: List[str] = Field(default_factory=list)  # "Name: Value"
    query_params: List[str] = Field(default_factory=list)  # "key=value"
    body: str = ""
    server: str = ""
    openapi_url: str = ""
    verbose: bool = False
    include_headers: bool = False
    show_docs: bool = False
    sigv4_enabled: bool = False
    sigv4_service: str = DEFAULT_SIGV4_SERVICE
    # True when -X was given on the command line rather than defaulted
    methods_explicit: bool = False

    @field_validator("methods", mode="before")
    @classmethod
    def _default_methods(cls, value: Any) -> List[str]:
        return _normalize_methods(value)

    @property
    def primary_method(self) -> str:
        """The method used for the actual request."""
        return self.methods[0] if self.methods else "GET"

    def derive(self, **overrides: Any) -> "RequestConfig":
        """Return an independent copy with the given fields replaced."""
        if "methods" in overrides:
            overrides["methods"] = _normalize_methods(overrides["methods"])
        return self.model_copy(update=overrides, deep=True)

    def validate_config(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            QurlError: VALIDATION when docs lack an OpenAPI URL or a method
                is not a known HTTP verb.
        """
        if self.show_docs and not self.openapi_url:
            raise new(
                ErrorKind.VALIDATION, "OpenAPI URL is required when using --docs flag"
            ).with_context("suggestion", "set QURL_OPENAPI environment variable or use --openapi flag")

        for method in self.methods:
            if method not in VALID_METHODS:
                raise (
                    new(ErrorKind.VALIDATION, "invalid HTTP method")
                    .with_context("method", method)
                    .with_context("valid_methods", VALID_METHODS)
                )


class MCPAccessPolicy(BaseModel):
    """Constraints applied by the MCP server to every tool call."""

    model_config = ConfigDict(frozen=True)

    allowed_methods: Tuple[str, ...] = ()  # empty means unrestricted
    path_prefix: str = ""  # empty means unrestricted
    inherited_headers: Tuple[str, ...] = ()
    sigv4: bool = False
    sigv4_service: str = DEFAULT_SIGV4_SERVICE
    description: str = ""
    server_url: str = ""
    openapi_url: str = ""

    @classmethod
    def from_request_config(
        cls,
        config: RequestConfig,
        path_prefix: str = "",
        description: Optional[str] = None,
    ) -> "MCPAccessPolicy":
        """
        Build the policy from the CLI configuration.

        Methods only become an allow-list when -X was passed explicitly;
        the defaulted GET leaves every method available.
        """
        allowed = tuple(config.methods) if config.methods_explicit else ()
        return cls(
            allowed_methods=allowed,
            path_prefix=path_prefix,
            inherited_headers=tuple(config.headers),
            sigv4=config.sigv4_enabled,
            sigv4_service=config.sigv4_service,
            description=description if description is not None else mcp_description_from_env(),
            server_url=config.server,
            openapi_url=config.openapi_url,
        )

    def allows_method(self, method: str) -> bool:
        if not self.allowed_methods:
            return True
        return any(allowed.upper() == method.upper() for allowed in self.allowed_methods)

    def allowed_display(self) -> str:
        return "[" + " ".join(self.allowed_methods) + "]"

    def validate_policy(self) -> None:
        """Ensure the MCP server can start with this policy."""
        if not self.openapi_url:
            raise (
                new(ErrorKind.CONFIG, "OpenAPI URL is required for MCP server")
                .with_context("config_type", "mcp")
                .with_context("suggestion", "use --openapi flag or set QURL_OPENAPI environment variable")
            )

        for method in self.allowed_methods:
            if method.upper() not in VALID_METHODS:
                raise (
                    new(ErrorKind.VALIDATION, "invalid HTTP method in allowed methods")
                    .with_context("method", method)
                    .with_context("valid_methods", VALID_METHODS)
                )
