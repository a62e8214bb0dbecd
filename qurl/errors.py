"""
qurl Errors - Structured error taxonomy and user-facing presentation.

Every failure inside qurl is raised as a ``QurlError`` carrying a kind,
a message, structured context (offending value, suggestion) and the
underlying cause. Errors are wrapped, not replaced, as they cross
component boundaries so the root cause survives to the CLI or MCP layer.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape


class ErrorKind(str, Enum):
    """Categories of errors."""

    VALIDATION = "validation"
    NETWORK = "network"
    AUTH = "auth"
    CONFIG = "config"
    INTERNAL = "internal"
    OPENAPI = "openapi"
    MCP = "mcp"


class QurlError(Exception):
    """
    A categorised error with context.

    Example:
        >>> raise new(ErrorKind.CONFIG, "no server URL available").with_context(
        ...     "suggestion", "use --server flag or provide OpenAPI URL"
        ... )
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def __repr__(self) -> str:
        return f"QurlError(kind={self.kind.value!r}, message={self.message!r})"

    def with_context(self, key: str, value: Any) -> "QurlError":
        """Attach a context value and return self for chaining."""
        self.context[key] = value
        return self


def new(kind: ErrorKind, message: str) -> QurlError:
    """Create a new error of the given kind."""
    return QurlError(kind, message)


def wrap(exc: BaseException, kind: ErrorKind, message: str) -> QurlError:
    """Wrap an existing exception, keeping it as the cause."""
    return QurlError(kind, message, cause=exc)


def kind_of(exc: BaseException) -> ErrorKind:
    """Return the error kind, or INTERNAL for foreign exceptions."""
    if isinstance(exc, QurlError):
        return exc.kind
    return ErrorKind.INTERNAL


def is_kind(exc: BaseException, kind: ErrorKind) -> bool:
    return isinstance(exc, QurlError) and exc.kind == kind


def context_of(exc: BaseException) -> Optional[Dict[str, Any]]:
    if isinstance(exc, QurlError):
        return exc.context
    return None


# ── Presentation ─────────────────────────────────────────────────────────


def user_message(exc: BaseException) -> str:
    """Return a user-friendly message with troubleshooting hints."""
    if not isinstance(exc, QurlError):
        return str(exc)

    formatter = _FORMATTERS.get(exc.kind)
    if formatter is None:
        return exc.message
    return formatter(exc)


def _with_hints(msg: str, title: str, suggestions: List[str]) -> str:
    if not suggestions:
        return msg
    return f"{msg}\n{title}:\n  - " + "\n  - ".join(suggestions)


def _format_validation(exc: QurlError) -> str:
    msg = str(exc)
    if "field" in exc.context:
        msg = f"Invalid {exc.context['field']}: {msg}"
    if "suggestion" in exc.context:
        msg = f"{msg}\nSuggestion: {exc.context['suggestion']}"
    return msg


def _format_network(exc: QurlError) -> str:
    msg = str(exc)
    if "url" in exc.context:
        msg = f"Network error accessing {exc.context['url']}: {msg}"

    lowered = msg.lower()
    suggestions = []
    if "timeout" in lowered or "timed out" in lowered:
        suggestions.append("Check your internet connection")
        suggestions.append("Verify the server responds within 30 seconds")
    if "connection refused" in lowered:
        suggestions.append("Verify the server is running")
        suggestions.append("Check the URL and port")
    return _with_hints(msg, "Troubleshooting", suggestions)


def _format_auth(exc: QurlError) -> str:
    msg = str(exc)
    lowered = msg.lower()
    suggestions = []
    if "suggestion" in exc.context:
        suggestions.append(str(exc.context["suggestion"]))
    if "unauthorized" in lowered:
        suggestions.append("Check your authentication credentials")
        suggestions.append("Verify API key or token is valid")
        suggestions.append('Use -H "Authorization: Bearer YOUR_TOKEN"')
    if "forbidden" in lowered:
        suggestions.append("Check if you have permission for this operation")
        suggestions.append("Verify your account has required access")
    return _with_hints(msg, "Auth help", suggestions)


def _format_config(exc: QurlError) -> str:
    msg = str(exc)
    if "config_type" in exc.context:
        msg = f"Configuration error ({exc.context['config_type']}): {msg}"

    lowered = exc.message.lower()
    suggestions = []
    if "suggestion" in exc.context:
        suggestions.append(str(exc.context["suggestion"]))
    if "openapi" in lowered:
        suggestions.append("Set QURL_OPENAPI environment variable")
        suggestions.append("Use --openapi flag to specify OpenAPI URL")
        suggestions.append("Verify OpenAPI spec is accessible")
    if "server" in lowered:
        suggestions.append("Use --server flag to specify server URL")
        suggestions.append("Check if server URL is correct")
    return _with_hints(msg, "Configuration help", suggestions)


def _format_openapi(exc: QurlError) -> str:
    return _with_hints(
        str(exc),
        "OpenAPI help",
        [
            "Verify OpenAPI specification is valid",
            "Check if the OpenAPI URL is accessible",
            "Try using --docs to explore the API",
        ],
    )


def _format_mcp(exc: QurlError) -> str:
    msg = str(exc)
    lowered = exc.message.lower()
    suggestions = []
    if "method" in lowered:
        suggestions.append("Check the -X flags passed with --mcp")
        suggestions.append("Verify the HTTP method is supported")
    if "tool" in lowered:
        suggestions.append("Use 'discover' tool to explore the API")
        suggestions.append("Check tool parameters are correct")
    return _with_hints(msg, "MCP help", suggestions)


_FORMATTERS = {
    ErrorKind.VALIDATION: _format_validation,
    ErrorKind.NETWORK: _format_network,
    ErrorKind.AUTH: _format_auth,
    ErrorKind.CONFIG: _format_config,
    ErrorKind.OPENAPI: _format_openapi,
    ErrorKind.MCP: _format_mcp,
}


def present_error(exc: Optional[BaseException], console: Optional[Console] = None) -> None:
    """Print an error to stderr as a single ``Error: ...`` block."""
    if exc is None:
        return
    console = console or Console(stderr=True)
    console.print(f"[red]Error:[/red] {escape(user_message(exc))}", highlight=False)


def debug_info(exc: BaseException) -> Dict[str, Any]:
    """Return detailed error information for debug logging."""
    info: Dict[str, Any] = {"error": str(exc), "type": "unknown", "context": {}}
    if isinstance(exc, QurlError):
        info["type"] = exc.kind.value
        info["message"] = exc.message
        info["context"] = exc.context
        if exc.cause is not None:
            info["cause"] = str(exc.cause)
    return info
