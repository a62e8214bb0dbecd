"""Request authentication: AWS SigV4 signing with a Lambda bypass."""

from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import boto3
import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError

from qurl.config import RequestConfig
from qurl.errors import ErrorKind, QurlError, new, wrap
from qurl.log import component_logger

LAMBDA_SCHEME = "lambda://"
EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()

_SIGNATURE_HEADERS = ("Authorization", "X-Amz-Date", "X-Amz-Security-Token")


def payload_hash(body: Optional[bytes]) -> str:
    """Hex SHA-256 of the request body (the empty digest for no body)."""
    if not body:
        return EMPTY_PAYLOAD_HASH
    return hashlib.sha256(body).hexdigest()


class Signer(ABC):
    """Adds signature material to a request's headers in place."""

    @abstractmethod
    def sign(
        self,
        request: httpx.Request,
        payload_hash: str,
        service: str,
        region: str,
        credentials: Any,
    ) -> None:
        pass


class _PrecomputedPayloadAuth(SigV4Auth):
    """SigV4Auth that signs a payload digest computed by the caller."""

    def __init__(self, credentials: Any, service_name: str, region_name: str, digest: str):
        super().__init__(credentials, service_name, region_name)
        self._digest = digest

    def payload(self, request: AWSRequest) -> str:
        return self._digest


class BotocoreSigner(Signer):
    """SigV4 signer backed by botocore."""

    def sign(
        self,
        request: httpx.Request,
        payload_hash: str,
        service: str,
        region: str,
        credentials: Any,
    ) -> None:
        aws_request = AWSRequest(
            method=request.method,
            url=str(request.url),
            data=request.content,
            headers={name: value for name, value in request.headers.items()},
        )
        _PrecomputedPayloadAuth(credentials, service, region, payload_hash).add_auth(aws_request)

        for name in _SIGNATURE_HEADERS:
            if name in aws_request.headers:
                request.headers[name] = aws_request.headers[name]


class Authenticator:
    """
    Applies authentication to outgoing requests.

    Policy:
    - ``lambda://`` targets are never signed (direct invocation)
    - SigV4 signing when enabled in the configuration
    - otherwise nothing
    """

    def __init__(
        self,
        config: RequestConfig,
        signer: Optional[Signer] = None,
        session_factory: Optional[Callable[[], Any]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._signer = signer or BotocoreSigner()
        self._session_factory = session_factory or boto3.Session
        self._logger = component_logger(logger, "auth")

    def apply(self, request: httpx.Request, target_url: str) -> None:
        """
        Authenticate ``request`` in place.

        Raises:
            QurlError: AUTH when credentials, region or signing fail.
        """
        if target_url.startswith(LAMBDA_SCHEME):
            self._logger.debug("lambda URL detected, skipping SigV4")
            return

        if not self._config.sigv4_enabled:
            return

        self._logger.debug("applying AWS SigV4 signature", extra={"service": self._config.sigv4_service})
        try:
            self._apply_sigv4(request)
        except QurlError as exc:
            raise wrap(exc, ErrorKind.AUTH, "SigV4 signing failed") from exc
        self._logger.debug("SigV4 signature applied successfully")

    def _apply_sigv4(self, request: httpx.Request) -> None:
        service = self._config.sigv4_service

        try:
            session = self._session_factory()
        except BotoCoreError as exc:
            raise wrap(exc, ErrorKind.AUTH, "failed to load AWS configuration").with_context(
                "suggestion", "ensure AWS credentials are configured"
            ) from exc

        region = os.environ.get("AWS_REGION") or session.region_name
        if not region:
            raise new(ErrorKind.AUTH, "AWS region not configured").with_context(
                "suggestion", "set AWS_REGION or AWS_DEFAULT_REGION environment variable"
            )

        try:
            credentials = session.get_credentials()
        except BotoCoreError as exc:
            raise wrap(exc, ErrorKind.AUTH, "failed to retrieve AWS credentials").with_context(
                "suggestion", "check AWS credential configuration"
            ) from exc
        if credentials is None:
            raise new(ErrorKind.AUTH, "AWS credentials not found").with_context(
                "suggestion", "check AWS credential configuration"
            )

        digest = payload_hash(request.content)
        try:
            self._signer.sign(request, digest, service, region, credentials.get_frozen_credentials())
        except Exception as exc:
            raise (
                wrap(exc, ErrorKind.AUTH, "failed to sign request with SigV4")
                .with_context("service", service)
                .with_context("region", region)
            ) from exc

        self._logger.debug("SigV4 signature applied", extra={"service": service, "region": region})
