"""
qurl - HTTP client with OpenAPI-powered help.

Resolves request targets from an OpenAPI v3 document, optionally signs
requests with AWS SigV4, dispatches ``lambda://`` URLs straight to AWS
Lambda, and can serve the same capability as an MCP tool server.

Architecture:
- URL resolver picks the base URL (--server, server index, or spec servers)
- Request builder layers headers: identity, spec hints, auth, user overrides
- Executor runs one request and prints (CLI) or returns (MCP) the response
- MCP server speaks line-delimited JSON-RPC over stdin/stdout
"""

__version__ = "1.0.0"
__author__ = "qurl contributors"
__license__ = "Apache-2.0"

from qurl.config import MCPAccessPolicy, RequestConfig
from qurl.errors import ErrorKind, QurlError

__all__ = [
    "ErrorKind",
    "MCPAccessPolicy",
    "QurlError",
    "RequestConfig",
    "__version__",
]
