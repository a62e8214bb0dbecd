"""
qurl Spec Provider Base - Interface consumed by the HTTP pipeline and MCP server.

The resolver, request builder, executor and MCP server only ever talk to an
OpenAPI document through this interface, so tests can substitute a small
in-memory provider.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

NO_ENDPOINTS_MESSAGE = "No endpoints found matching the specified path and method"


class SpecProvider(ABC):
    """
    Abstract source of OpenAPI-derived facts.

    Example:
        >>> class StaticProvider(SpecProvider):
        ...     def base_url(self, timeout=None):
        ...         return "https://api.example.com"
        ...     # remaining methods
    """

    @abstractmethod
    def base_url(self, timeout: Optional[float] = None) -> str:
        """
        Base URL for requests.

        The first declared server wins (absolute as-is, relative joined to
        the spec URL's scheme and host); with no servers, the spec URL's
        scheme and host.
        """

    @abstractmethod
    def absolute_url(self, server_url: str) -> str:
        """Anchor a relative server URL to the spec URL's scheme and host."""

    @abstractmethod
    def get_servers(self) -> List[str]:
        """Declared server URLs in document order."""

    @abstractmethod
    def set_headers(
        self,
        request: httpx.Request,
        path: str,
        method: str,
        timeout: Optional[float] = None,
    ) -> None:
        """Best-effort header hints (Accept) for the matching operation."""

    @abstractmethod
    def view(self, path: str, method: str, timeout: Optional[float] = None) -> str:
        """
        Render documentation text.

        ``path`` ending in ``/`` lists the subtree, ``*`` or ``""`` means all
        paths or methods, comma-joined methods mean any of them. No match
        returns ``NO_ENDPOINTS_MESSAGE``.
        """
