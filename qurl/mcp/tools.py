"""Static tool definitions advertised by ``tools/list``."""

from typing import Any, Dict, List

DISCOVER_TOOL: Dict[str, Any] = {
    "name": "discover",
    "description": (
        "Discover available OpenAPI endpoints and their documentation. Without filters, lists all "
        "available paths (no details). For detailed request/response schemas, provide a specific path "
        "and optionally a method if the endpoint supports multiple verbs."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": (
                    "Path filter. Use '*' or omit to list all paths. Provide specific path "
                    "(e.g., /users/123) to see detailed schemas, parameters, and response types "
                    "for that endpoint."
                ),
            },
            "method": {
                "type": "string",
                "description": (
                    "HTTP method filter (GET, POST, PUT, DELETE, etc.). Required for detailed schemas "
                    "if endpoint supports multiple methods. Use 'ANY' or omit to see all methods for a path."
                ),
            },
        },
    },
}

EXECUTE_TOOL: Dict[str, Any] = {
    "name": "execute",
    "description": (
        "Execute an HTTP request to an OpenAPI endpoint. Supports optional response filtering via "
        "'regex' (text search with context) or 'jmespath' (JSON filtering) parameters to reduce "
        "token usage for large responses."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "API endpoint path (required)",
            },
            "method": {
                "type": "string",
                "description": "HTTP method (GET, POST, PUT, DELETE, etc.)",
                "default": "GET",
            },
            "headers": {
                "type": "object",
                "description": "HTTP headers as key-value pairs",
            },
            "query": {
                "type": "object",
                "description": "Query parameters as key-value pairs",
            },
            "body": {
                "type": "string",
                "description": "Request body data",
            },
            "regex": {
                "type": "string",
                "description": (
                    "Regex pattern to search response text (returns matches with surrounding context). "
                    "Works with any text format including minified JSON. Cannot be used with jmespath."
                ),
            },
            "jmespath": {
                "type": "string",
                "description": (
                    "JMESPath expression to filter JSON response (https://jmespath.org). "
                    "Cannot be used with regex."
                ),
            },
            "context_lines": {
                "type": "integer",
                "description": (
                    "Amount of context to show around regex matches. Multiplied by ~80 characters per "
                    "'line' (default: 5 = ~400 chars of context). Only used with regex parameter."
                ),
                "default": 5,
            },
        },
        "required": ["path"],
    },
}


def list_tools() -> List[Dict[str, Any]]:
    return [DISCOVER_TOOL, EXECUTE_TOOL]
