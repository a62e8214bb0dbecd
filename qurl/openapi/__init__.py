"""
qurl OpenAPI module.

Loads OpenAPI v3 documents and answers the questions the HTTP pipeline and
the MCP server ask of them: base URL, servers, header hints and
documentation views.
"""

from qurl.openapi.base import NO_ENDPOINTS_MESSAGE, SpecProvider
from qurl.openapi.document import OpenAPIDocument, Operation
from qurl.openapi.viewer import OpenAPIViewer

__all__ = ["NO_ENDPOINTS_MESSAGE", "SpecProvider", "OpenAPIDocument", "Operation", "OpenAPIViewer"]
