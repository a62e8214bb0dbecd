"""
qurl CLI - curl-like HTTP client driven by OpenAPI.

Run ``qurl /path`` to call an endpoint of the configured API, ``qurl --docs``
to browse its documentation, or ``qurl --mcp`` to serve it to an LLM.
"""

import logging
import sys
from typing import List, Tuple

import click

from qurl import __version__
from qurl.config import (
    DEFAULT_SIGV4_SERVICE,
    MCPAccessPolicy,
    RequestConfig,
    openapi_url_from_env,
    server_from_env,
)
from qurl.errors import ErrorKind, QurlError, debug_info, new, present_error
from qurl.http.auth import Authenticator
from qurl.http.executor import ExecutorFactory
from qurl.http.transport import create_client
from qurl.log import setup_logging
from qurl.mcp.server import MCPServer
from qurl.openapi.viewer import OpenAPIViewer


def split_methods(values: Tuple[str, ...]) -> List[str]:
    """``-X GET -X POST`` and ``-X GET,POST`` both give ``["GET", "POST"]``."""
    methods: List[str] = []
    for value in values:
        methods += [m.strip().upper() for m in value.split(",") if m.strip()]
    return methods


def docs_method(config: RequestConfig) -> str:
    """Method filter for --docs: all given methods, or every method when -X was omitted."""
    if len(config.methods) > 1:
        return ",".join(config.methods)
    if not config.methods_explicit:
        return "ANY"
    return config.methods[0]


def run_request(config: RequestConfig, logger: logging.Logger) -> None:
    """Execute an HTTP request or show documentation."""
    if len(config.methods) > 1 and not config.show_docs:
        raise (
            new(ErrorKind.VALIDATION, "cannot specify multiple HTTP methods for a single request")
            .with_context("methods", config.methods)
            .with_context(
                "suggestion",
                "use -X with a single method (e.g., -X POST) or add --docs flag to view documentation for multiple methods",
            )
        )
    config.validate_config()

    logger.debug(
        "processing HTTP command",
        extra={"methods": config.methods, "path": config.path, "docs": config.show_docs},
    )
    with create_client() as client:
        executor = ExecutorFactory(logger=logger).create(config, client=client)

        if config.show_docs:
            executor.show_docs(config.path, docs_method(config))
            return

        if not config.path:
            raise new(ErrorKind.VALIDATION, "path is required for HTTP requests").with_context(
                "suggestion", "provide a URL or path as an argument"
            )
        executor.execute(config.path)


def run_mcp(config: RequestConfig, description: str, logger: logging.Logger) -> None:
    """Serve the MCP protocol on stdin/stdout until input ends."""
    policy = MCPAccessPolicy.from_request_config(
        config, path_prefix=config.path, description=description or None
    )
    policy.validate_policy()

    logger.debug(
        "starting MCP server",
        extra={
            "openapi_url": policy.openapi_url,
            "path_prefix": policy.path_prefix,
            "allowed_methods": list(policy.allowed_methods),
            "sigv4": policy.sigv4,
        },
    )
    with create_client() as client:
        spec = OpenAPIViewer(
            config.openapi_url,
            client=client,
            authenticator=Authenticator(config, logger=logger),
            logger=logger,
        )
        server = MCPServer(
            policy,
            config,
            spec,
            executor_factory=ExecutorFactory(logger=logger),
            client=client,
            logger=logger,
        )
        server.serve()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("path", required=False, default="")
@click.option("-X", "--request", "methods", multiple=True, help="HTTP method; repeat for several (docs and MCP)")
@click.option("-H", "--header", "headers", multiple=True, help="Custom header 'Name: Value' (repeatable)")
@click.option("-q", "--query", "query_params", multiple=True, help="Query parameter 'key=value' (repeatable)")
@click.option("-d", "--data", "body", default="", help="Request body")
@click.option("--server", default="", help="Server URL or index (overrides OpenAPI servers)")
@click.option("--openapi", "openapi_url", default="", help="OpenAPI specification URL or file")
@click.option("-v", "--verbose", is_flag=True, help="Show request and response details")
@click.option("-i", "--include", "include_headers", is_flag=True, help="Include response headers in output")
@click.option("--docs", "show_docs", is_flag=True, help="Show OpenAPI documentation")
@click.option("--aws-sigv4", "sigv4", is_flag=True, help="Sign requests with AWS SigV4")
@click.option("--aws-service", default=DEFAULT_SIGV4_SERVICE, show_default=True, help="AWS service name for SigV4")
@click.option("--mcp", "mcp_mode", is_flag=True, help="Run as an MCP server on stdin/stdout")
@click.option("--mcp-desc", default="", help="Server description sent to MCP clients")
@click.version_option(__version__, "--version", prog_name="qurl")
def cli(
    path: str,
    methods: tuple,
    headers: tuple,
    query_params: tuple,
    body: str,
    server: str,
    openapi_url: str,
    verbose: bool,
    include_headers: bool,
    show_docs: bool,
    sigv4: bool,
    aws_service: str,
    mcp_mode: bool,
    mcp_desc: str,
) -> None:
    """
    qurl - HTTP client with OpenAPI-powered docs and an MCP server mode.

    \b
    Examples:
        qurl /pets                       # GET against the spec's server
        qurl -X POST -d '{"a":1}' /pets  # POST with a JSON body
        qurl --docs /pets                # Documentation for /pets
        qurl --mcp -X GET /pets          # MCP server, GET only, under /pets
    """
    logger = setup_logging(level="debug" if verbose else None)

    explicit = split_methods(methods)
    config = RequestConfig(
        methods=explicit or ["GET"],
        methods_explicit=bool(explicit),
        path=path or "",
        headers=list(headers),
        query_params=list(query_params),
        body=body,
        server=server or server_from_env(),
        openapi_url=openapi_url or openapi_url_from_env(),
        verbose=verbose,
        include_headers=include_headers,
        show_docs=show_docs,
        sigv4_enabled=sigv4,
        sigv4_service=aws_service,
    )

    try:
        if mcp_mode:
            run_mcp(config, mcp_desc, logger)
        else:
            run_request(config, logger)
    except QurlError as exc:
        logger.debug("command failed: %s", debug_info(exc))
        present_error(exc)
        sys.exit(1)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
