"""
qurl CLI module.

Provides the ``qurl`` command: HTTP requests, OpenAPI documentation and
the MCP server mode. The console entry point is ``qurl.cli.main:main``.
"""

from qurl.cli.main import cli

__all__ = ["cli"]
