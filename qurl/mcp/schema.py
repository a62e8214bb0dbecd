"""Data models for MCP JSON-RPC envelopes and tool arguments."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from qurl.mcp.filters import DEFAULT_CONTEXT_LINES

JSONRPC_VERSION = "2.0"

# JSON-RPC error codes
PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class MCPRequest(BaseModel):
    """An incoming JSON-RPC message; notifications carry no id."""

    jsonrpc: str = JSONRPC_VERSION
    id: Any = None
    method: str = ""
    params: Any = None


class MCPError(BaseModel):
    code: int
    message: str


class MCPResponse(BaseModel):
    """An outgoing JSON-RPC message with either ``result`` or ``error``."""

    jsonrpc: str = JSONRPC_VERSION
    id: Any = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[MCPError] = None

    def to_dict(self) -> Dict[str, Any]:
        # ``id`` is always present (null for parse errors); result/error only when set.
        data: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error.model_dump()
        return data


def text_result(text: str, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Tool result holding one text content block."""
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if meta is not None:
        result["_meta"] = meta
    return result


# ── Tool arguments ───────────────────────────────────────────────────────


class DiscoverArguments(BaseModel):
    """Arguments of the ``discover`` tool."""

    model_config = ConfigDict(extra="ignore")

    path: Optional[str] = None
    method: Optional[str] = None


class ExecuteArguments(BaseModel):
    """Arguments of the ``execute`` tool."""

    model_config = ConfigDict(extra="ignore")

    path: Optional[str] = None
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    regex: Optional[str] = None
    jmespath: Optional[str] = None
    context_lines: int = DEFAULT_CONTEXT_LINES

    @field_validator("headers", "query", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("regex", "jmespath")
    @classmethod
    def _blank_is_absent(cls, value: Optional[str]) -> Optional[str]:
        # An empty or whitespace-only filter must not trigger filtering.
        if value is None or not value.strip():
            return None
        return value

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if value is None or value == "":
            return "GET"
        return value.upper() if isinstance(value, str) else value
