"""
Transports: plain HTTP via httpx, and ``lambda://`` via AWS Lambda Invoke.

A ``lambda://function-name/path`` URL is turned into an API Gateway v2 HTTP
event, the function is invoked synchronously, and its proxy response is
turned back into an ``httpx.Response`` so the rest of the pipeline cannot
tell the difference.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from qurl.log import component_logger

DEFAULT_TIMEOUT = 30.0


class LambdaInvocationError(httpx.RequestError):
    """Raised when a Lambda invocation cannot produce an HTTP response."""


LAMBDA_EVENT_DEFAULTS = {
    "account_id": "123456789012",
    "api_id": "lambda-adapter",
    "domain_name": "lambda.local",
    "domain_prefix": "lambda",
    "user_agent": "qurl",
}


def request_to_event(request: httpx.Request) -> Dict[str, Any]:
    """Convert a request into an API Gateway v2 HTTP proxy event."""
    body = request.read()
    url = request.url
    path = url.path or "/"
    raw_query = url.query.decode("ascii") if url.query else ""

    headers: Dict[str, str] = {}
    for name in request.headers.keys():
        headers[name] = ",".join(request.headers.get_list(name))

    query: Dict[str, str] = {}
    for key, value in url.params.multi_items():
        query[key] = f"{query[key]},{value}" if key in query else value

    now = datetime.now(timezone.utc)
    route_key = f"{request.method} {path}"
    return {
        "version": "2.0",
        "routeKey": route_key,
        "rawPath": path,
        "rawQueryString": raw_query,
        "headers": headers,
        "queryStringParameters": query,
        "requestContext": {
            "accountId": LAMBDA_EVENT_DEFAULTS["account_id"],
            "apiId": LAMBDA_EVENT_DEFAULTS["api_id"],
            "domainName": LAMBDA_EVENT_DEFAULTS["domain_name"],
            "domainPrefix": LAMBDA_EVENT_DEFAULTS["domain_prefix"],
            "http": {
                "method": request.method,
                "path": path,
                "protocol": "HTTP/1.1",
                "sourceIp": "127.0.0.1",
                "userAgent": LAMBDA_EVENT_DEFAULTS["user_agent"],
            },
            "requestId": f"qurl-{time.time_ns()}",
            "routeKey": route_key,
            "stage": "$default",
            "time": now.strftime("%d/%b/%Y:%H:%M:%S %z"),
            "timeEpoch": int(now.timestamp() * 1000),
        },
        "body": body.decode("utf-8", errors="replace"),
        "isBase64Encoded": False,
    }


def event_response_to_http(payload: bytes, request: httpx.Request) -> httpx.Response:
    """Convert a Lambda proxy response payload into an ``httpx.Response``."""
    try:
        data = json.loads(payload or b"{}")
    except ValueError as exc:
        raise LambdaInvocationError(f"parsing Lambda response: {exc}", request=request) from exc
    if not isinstance(data, dict):
        raise LambdaInvocationError("parsing Lambda response: payload is not an object", request=request)

    try:
        body = data.get("body") or ""
        if data.get("isBase64Encoded"):
            content = base64.b64decode(body)
        else:
            content = body.encode("utf-8")
        headers = {str(k): str(v) for k, v in (data.get("headers") or {}).items()}
        status_code = int(data.get("statusCode") or 200)
    except (ValueError, TypeError, AttributeError) as exc:
        raise LambdaInvocationError(f"malformed Lambda response: {exc}", request=request) from exc

    return httpx.Response(status_code=status_code, headers=headers, content=content, request=request)


class LambdaTransport(httpx.BaseTransport):
    """
    httpx transport that invokes the Lambda named by the URL host.

    The boto3 client is created on first use, so plain HTTP sessions never
    load AWS configuration.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], Any]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._client_factory = client_factory or (lambda: boto3.client("lambda"))
        self._client: Any = None
        self._logger = component_logger(logger, "lambda_transport")

    def _lambda_client(self, request: httpx.Request) -> Any:
        if self._client is None:
            try:
                self._client = self._client_factory()
            except BotoCoreError as exc:
                raise LambdaInvocationError(f"loading AWS config: {exc}", request=request) from exc
        return self._client

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        function_name = request.url.host
        if not function_name:
            raise LambdaInvocationError("lambda URL missing function name", request=request)

        event = request_to_event(request)
        client = self._lambda_client(request)
        self._logger.debug("invoking Lambda function", extra={"function": function_name})

        try:
            output = client.invoke(
                FunctionName=function_name,
                InvocationType="RequestResponse",
                Payload=json.dumps(event).encode("utf-8"),
            )
        except (BotoCoreError, ClientError) as exc:
            raise LambdaInvocationError(f"invoking Lambda function: {exc}", request=request) from exc

        if output.get("FunctionError"):
            raise LambdaInvocationError(f"Lambda function error: {output['FunctionError']}", request=request)

        payload = output.get("Payload")
        raw = payload.read() if hasattr(payload, "read") else (payload or b"")
        return event_response_to_http(raw, request)


def create_client(
    timeout: float = DEFAULT_TIMEOUT,
    lambda_transport: Optional[httpx.BaseTransport] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """httpx client with ``lambda://`` routed to the Lambda transport."""
    return httpx.Client(
        timeout=timeout,
        transport=transport,
        mounts={"lambda://": lambda_transport or LambdaTransport()},
    )
