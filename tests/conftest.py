"""Shared fixtures: an in-memory spec provider and a small OpenAPI document."""

import logging
from typing import Dict, List, Optional

import httpx
import pytest
import yaml

from qurl.log import LOGGER_NAME
from qurl.openapi.base import SpecProvider


class StaticSpec(SpecProvider):
    """Spec provider with canned answers that records what it was asked."""

    def __init__(
        self,
        base: str = "https://spec.example.com",
        servers: Optional[List[str]] = None,
        accept: Optional[str] = None,
        view_text: str = "docs",
        fail: Optional[Exception] = None,
    ):
        self.base = base
        self.servers = servers if servers is not None else [base]
        self.accept = accept
        self.view_text = view_text
        self.fail = fail
        self.view_calls: List[tuple] = []
        self.header_calls: List[tuple] = []

    def base_url(self, timeout=None) -> str:
        if self.fail:
            raise self.fail
        return self.base

    def absolute_url(self, server_url: str) -> str:
        if not server_url.startswith("/"):
            server_url = "/" + server_url
        return "https://spec.example.com" + server_url

    def get_servers(self) -> List[str]:
        if self.fail:
            raise self.fail
        return list(self.servers)

    def set_headers(self, request: httpx.Request, path: str, method: str, timeout=None) -> None:
        self.header_calls.append((path, method, timeout))
        if self.fail:
            raise self.fail
        if self.accept:
            request.headers["Accept"] = self.accept

    def view(self, path: str, method: str, timeout=None) -> str:
        self.view_calls.append((path, method, timeout))
        if self.fail:
            raise self.fail
        return self.view_text


PETSTORE: Dict = {
    "openapi": "3.0.3",
    "info": {
        "title": "Petstore",
        "version": "1.2.0",
        "description": "A sample pet store. It has pets and owners.",
    },
    "servers": [{"url": "https://petstore.example.com/v1"}, {"url": "/relative"}],
    "security": [{"apiKey": []}],
    "components": {
        "securitySchemes": {"apiKey": {"type": "apiKey", "in": "header", "name": "X-API-Key"}},
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "id": {"type": "integer", "format": "int64"},
                    "name": {"type": "string", "description": "Pet name"},
                },
            }
        },
        "parameters": {
            "Limit": {"name": "limit", "in": "query", "schema": {"type": "integer", "format": "int32"}},
        },
    },
    "paths": {
        "/pets": {
            "post": {
                "summary": "Create a pet",
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                },
                "responses": {"201": {"description": "Created"}},
            },
            "get": {
                "summary": "List pets",
                "parameters": [{"$ref": "#/components/parameters/Limit"}],
                "responses": {
                    "200": {
                        "description": "A list of pets",
                        "content": {
                            "application/json": {
                                "schema": {"type": "array", "items": {"$ref": "#/components/schemas/Pet"}}
                            },
                            "application/xml": {},
                        },
                    },
                    "default": {"description": "Error", "content": {"application/problem+json": {}}},
                },
            },
        },
        "/pets/{petId}": {
            "parameters": [{"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}],
            "get": {
                "summary": "Get a pet",
                "description": "Returns a single pet by id.",
                "responses": {
                    "200": {
                        "description": "The pet",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                    },
                    "404": {"description": "Not found", "content": {"text/plain": {}}},
                },
            },
            "delete": {
                "summary": "Delete a pet",
                "responses": {"404": {"description": "Not found", "content": {"text/plain": {}}}},
            },
        },
        "/owners": {
            "get": {"summary": "List owners", "responses": {"200": {"description": "OK"}}},
        },
    },
}


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers installed by setup_logging so streams do not leak between tests."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def static_spec():
    return StaticSpec()


@pytest.fixture
def petstore_document() -> Dict:
    return PETSTORE


@pytest.fixture
def petstore_file(tmp_path):
    """The petstore document written as YAML."""
    path = tmp_path / "petstore.yaml"
    path.write_text(yaml.safe_dump(PETSTORE, sort_keys=False))
    return path
