"""
qurl MCP module.

Serves the HTTP pipeline and OpenAPI documentation to LLM clients as two
MCP tools over line-delimited JSON-RPC, with optional regex and JMESPath
reduction of large responses.
"""

from qurl.mcp.filters import FilterError, FilterResult, filter_jmespath, filter_regex
from qurl.mcp.server import MCPServer

__all__ = ["FilterError", "FilterResult", "filter_jmespath", "filter_regex", "MCPServer"]
