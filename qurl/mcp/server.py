"""
qurl MCP Server - Line-delimited JSON-RPC 2.0 over stdio.

Exposes two tools to LLM clients:

- ``discover``: OpenAPI documentation for paths and methods
- ``execute``: perform an HTTP request, optionally filtered

Messages are handled strictly one at a time: a line is read, fully
processed (including any HTTP call) and answered before the next line is
read.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, List, Optional, TextIO, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from qurl.config import MCPAccessPolicy, RequestConfig
from qurl.errors import ErrorKind, QurlError, wrap
from qurl.http.executor import ExecutorFactory
from qurl.http.response import ResponseData
from qurl.http.transport import create_client
from qurl.log import component_logger
from qurl.mcp.filters import FilterError, FilterResult, filter_jmespath, filter_regex
from qurl.mcp.schema import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    DiscoverArguments,
    ExecuteArguments,
    MCPError,
    MCPRequest,
    MCPResponse,
    text_result,
)
from qurl.mcp.tools import list_tools
from qurl.openapi.base import SpecProvider

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "qurl"
SERVER_VERSION = "1.0.0"

DISCOVER_TIMEOUT = 10.0
EXECUTE_TIMEOUT = 30.0

ArgsT = TypeVar("ArgsT", bound=BaseModel)


class ToolCallError(Exception):
    """A tool call that must be answered with a JSON-RPC error."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class MCPServer:
    """
    MCP protocol engine.

    Holds one immutable access policy, one spec provider and the base
    request configuration from which every ``execute`` call derives its own.
    """

    def __init__(
        self,
        policy: MCPAccessPolicy,
        base_config: RequestConfig,
        spec: SpecProvider,
        executor_factory: Optional[ExecutorFactory] = None,
        client: Optional[httpx.Client] = None,
        input: Optional[TextIO] = None,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.policy = policy
        self.base_config = base_config
        self.spec = spec
        self._executor_factory = executor_factory or ExecutorFactory(logger=logger)
        self._client = client
        self._owns_client = client is None
        self._input = input or sys.stdin
        self._output = output or sys.stdout
        self._logger = component_logger(logger, "mcp_server")

    # ── Loop ─────────────────────────────────────────────────────────────

    def serve(self) -> None:
        """
        Process messages until end of input.

        Raises:
            QurlError: INTERNAL when the input stream cannot be read.
        """
        self._logger.debug("MCP server started, reading from stdin")
        try:
            while True:
                try:
                    line = self._input.readline()
                except (OSError, ValueError) as exc:
                    self._logger.error("error reading from stdin: %s", exc)
                    raise wrap(exc, ErrorKind.INTERNAL, "failed to read MCP messages from stdin") from exc
                if not line:
                    break
                if not line.strip():
                    continue

                self._logger.debug("received MCP message", extra={"raw_message": line.rstrip("\n")})
                response = self.handle_line(line)
                if response is not None:
                    self._send(response)
        finally:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None
        self._logger.debug("MCP server stopped")

    def handle_line(self, line: str) -> Optional[MCPResponse]:
        """Decode one line and return the response to write, if any."""
        try:
            request = MCPRequest.model_validate(json.loads(line))
        except (ValueError, ValidationError) as exc:
            self._logger.warning("failed to parse MCP message: %s", exc)
            return self._error(None, PARSE_ERROR, "Parse error")
        return self.handle_request(request)

    def handle_request(self, request: MCPRequest) -> Optional[MCPResponse]:
        self._logger.debug("processing MCP request", extra={"id": request.id, "rpc_method": request.method})

        if request.method == "initialize":
            return MCPResponse(id=request.id, result=self._initialize())
        if request.method == "tools/list":
            return MCPResponse(id=request.id, result={"tools": list_tools()})
        if request.method == "tools/call":
            try:
                return MCPResponse(id=request.id, result=self._tools_call(request.params))
            except ToolCallError as exc:
                return self._error(request.id, exc.code, exc.message)
        if request.method == "notifications/cancelled":
            # Accepted but in-flight calls are never interrupted.
            self._logger.debug("received cancellation notification")
            return None

        self._logger.warning("unknown MCP method", extra={"rpc_method": request.method})
        return self._error(request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}")

    def _send(self, response: MCPResponse) -> None:
        try:
            data = json.dumps(response.to_dict())
        except (TypeError, ValueError) as exc:
            self._logger.error("failed to marshal MCP response: %s", exc)
            return
        self._output.write(data + "\n")
        self._output.flush()
        self._logger.debug("sent MCP response", extra={"response_id": response.id})

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> MCPResponse:
        return MCPResponse(id=request_id, error=MCPError(code=code, message=message))

    # ── Methods ──────────────────────────────────────────────────────────

    def _initialize(self) -> Dict[str, Any]:
        server_info: Dict[str, Any] = {"name": SERVER_NAME, "version": SERVER_VERSION}
        if self.policy.description:
            server_info["description"] = self.policy.description
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": server_info,
            "capabilities": {"tools": {}},
        }

    def _tools_call(self, params: Any) -> Dict[str, Any]:
        if not isinstance(params, dict):
            raise ToolCallError(INVALID_PARAMS, "Invalid params")
        name = params.get("name")
        if not isinstance(name, str):
            raise ToolCallError(INVALID_PARAMS, "Missing tool name")
        arguments = params.get("arguments")
        if not isinstance(arguments, dict):
            arguments = {}

        self._logger.debug("executing tool call", extra={"tool_name": name})
        if name == "discover":
            return self._discover(_decode(DiscoverArguments, arguments))
        if name == "execute":
            return self._execute(_decode(ExecuteArguments, arguments))
        raise ToolCallError(METHOD_NOT_FOUND, f"Unknown tool: {name}")

    # ── discover ─────────────────────────────────────────────────────────

    def discover_target(self, path: str, method: str) -> Tuple[str, str]:
        """Apply the path prefix and method allow-list to a discover query."""
        prefix = self.policy.path_prefix
        if prefix:
            if path in ("", "*"):
                path = prefix + "*"
            elif not path.startswith(prefix):
                path = prefix + (path[1:] if path.startswith("/") else path)

        allowed = self.policy.allowed_methods
        if allowed:
            if method and method.upper() != "ANY":
                if not self.policy.allows_method(method):
                    self._logger.warning(
                        "requested method not in allowed list",
                        extra={"http_method": method, "allowed": list(allowed)},
                    )
                    raise ToolCallError(
                        INVALID_PARAMS,
                        f"Method {method} not allowed. Allowed methods: {self.policy.allowed_display()}",
                    )
            else:
                method = allowed[0] if len(allowed) == 1 else "ANY"

        return path or "*", method or "ANY"

    def _discover(self, args: DiscoverArguments) -> Dict[str, Any]:
        path, method = self.discover_target(args.path or "", args.method or "")
        self._logger.debug(
            "discovering endpoints with constraints",
            extra={"discover_path": path, "discover_method": method, "path_prefix": self.policy.path_prefix},
        )
        try:
            text = self.spec.view(path, method, timeout=DISCOVER_TIMEOUT)
        except Exception as exc:
            self._logger.error("failed to discover endpoints: %s", exc)
            raise ToolCallError(INTERNAL_ERROR, f"Failed to discover endpoints: {exc}") from exc
        return text_result(text)

    # ── execute ──────────────────────────────────────────────────────────

    def _check_access(self, path: str, method: str) -> None:
        prefix = self.policy.path_prefix
        if prefix and not path.startswith(prefix):
            self._logger.warning("path outside allowed prefix", extra={"path": path, "prefix": prefix})
            raise ToolCallError(INVALID_PARAMS, f"Path {path} not allowed. Must be under {prefix}")
        if not self.policy.allows_method(method):
            self._logger.warning(
                "method not in allowed list", extra={"http_method": method, "allowed": list(self.policy.allowed_methods)}
            )
            raise ToolCallError(
                INVALID_PARAMS,
                f"Method {method} not allowed. Allowed methods: {self.policy.allowed_display()}",
            )

    def request_config(self, args: ExecuteArguments) -> RequestConfig:
        """Per-call configuration layered on the server's inherited settings."""
        headers = list(self.policy.inherited_headers)
        headers += [f"{name}: {value}" for name, value in args.headers.items()]
        return self.base_config.derive(
            methods=[args.method],
            path=args.path,
            headers=headers,
            query_params=[f"{key}={value}" for key, value in args.query.items()],
            body=args.body or "",
            sigv4_enabled=self.policy.sigv4,
            sigv4_service=self.policy.sigv4_service,
            show_docs=False,
        )

    def _execute(self, args: ExecuteArguments) -> Dict[str, Any]:
        if not args.path:
            raise ToolCallError(INVALID_PARAMS, "Missing required parameter: path")
        self._check_access(args.path, args.method)
        if args.regex is not None and args.jmespath is not None:
            raise ToolCallError(INVALID_PARAMS, "Cannot use both regex and jmespath filters simultaneously")

        config = self.request_config(args)
        self._logger.debug(
            "executing HTTP request via MCP",
            extra={
                "http_method": args.method,
                "path": args.path,
                "headers": len(config.headers),
                "query_params": len(config.query_params),
                "has_body": bool(config.body),
            },
        )

        if self._client is None:
            self._client = create_client(timeout=EXECUTE_TIMEOUT)
        try:
            executor = self._executor_factory.create(
                config, client=self._client, spec=self.spec, timeout=EXECUTE_TIMEOUT
            )
            data = executor.execute_for_mcp(args.path)
        except QurlError as exc:
            self._logger.error("HTTP request failed via MCP: %s", exc)
            raise ToolCallError(INTERNAL_ERROR, f"HTTP request failed: {exc}") from exc

        if args.regex is not None:
            try:
                filtered = filter_regex(data.body, args.regex, args.context_lines, logger=self._logger)
            except FilterError as exc:
                self._logger.error("regex filter failed: %s", exc)
                raise ToolCallError(INTERNAL_ERROR, f"Regex filter failed: {exc}") from exc
            return self._filtered_result(filtered, data, config)

        if args.jmespath is not None:
            try:
                filtered = filter_jmespath(data.body, args.jmespath, logger=self._logger)
            except FilterError as exc:
                self._logger.error("jmespath filter failed: %s", exc)
                raise ToolCallError(INTERNAL_ERROR, f"JMESPath filter failed: {exc}") from exc
            return self._filtered_result(filtered, data, config)

        return text_result(status_preamble(data, config) + data.body)

    def _filtered_result(self, filtered: FilterResult, data: ResponseData, config: RequestConfig) -> Dict[str, Any]:
        return text_result(status_preamble(data, config) + filtered.content, meta=filtered.meta)


def status_preamble(data: ResponseData, config: RequestConfig) -> str:
    """Status line, plus headers when requested, for verbose MCP output."""
    if not (config.verbose or config.include_headers):
        return ""
    lines: List[str] = [f"HTTP Status: {data.status_code}\n"]
    if config.include_headers:
        lines.append("\nHeaders:\n")
        lines += [f"{name}: {value}\n" for name, value in data.headers.multi_items()]
        lines.append("\n")
    return "".join(lines)


def _decode(model: Type[ArgsT], arguments: Dict[str, Any]) -> ArgsT:
    """Validate tool arguments right after decoding."""
    try:
        return model.model_validate(arguments)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ToolCallError(INVALID_PARAMS, f"Invalid params: {details}") from exc
