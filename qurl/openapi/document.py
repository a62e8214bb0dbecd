"""
qurl OpenAPI Document - Parsed document model and operation queries.

Documents are parsed with PyYAML, which accepts JSON as well as YAML.
Local ``$ref`` pointers (``#/components/...``) are followed on access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from qurl.errors import ErrorKind, new, wrap

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options")
METHOD_ORDER = {"GET": 0, "POST": 1, "PUT": 2, "PATCH": 3, "DELETE": 4, "HEAD": 5, "OPTIONS": 6}
LOCATION_ORDER = {"path": 0, "query": 1, "header": 2, "cookie": 3}

_MAX_REF_DEPTH = 32


@dataclass
class Operation:
    """One path + method pair from the document."""

    path: str
    method: str
    summary: str = ""
    description: str = ""
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    request_body: Optional[Dict[str, Any]] = None
    responses: Dict[str, Any] = field(default_factory=dict)


def matches_path_filter(path: str, pattern: str) -> bool:
    """``""``/``*`` match all, a trailing ``*`` is a prefix match, else exact."""
    if pattern in ("", "*"):
        return True
    if pattern.endswith("*"):
        return path.startswith(pattern[:-1])
    return path == pattern


def matches_method_filter(method: str, pattern: str) -> bool:
    """``""``/``ANY``/``*`` match all; comma-joined lists match any entry."""
    if pattern in ("", "*") or pattern.upper() == "ANY":
        return True
    return any(method.upper() == m.strip().upper() for m in pattern.split(","))


def parse_document(data: bytes) -> Dict[str, Any]:
    """Parse JSON or YAML bytes into a document mapping."""
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise wrap(exc, ErrorKind.OPENAPI, "parsing OpenAPI document") from exc
    if not isinstance(document, dict):
        raise new(ErrorKind.OPENAPI, "parsing OpenAPI document: expected a mapping at the top level")
    return document


class OpenAPIDocument:
    """Read-only view over a parsed OpenAPI v3 document."""

    def __init__(self, raw: Dict[str, Any]):
        self.raw = raw

    @classmethod
    def from_bytes(cls, data: bytes) -> "OpenAPIDocument":
        return cls(parse_document(data))

    @property
    def info(self) -> Dict[str, Any]:
        return self.raw.get("info") or {}

    @property
    def servers(self) -> List[str]:
        """Server URLs in document order."""
        return [str((server or {}).get("url") or "") for server in self.raw.get("servers") or []]

    @property
    def security_schemes(self) -> Dict[str, Any]:
        return (self.raw.get("components") or {}).get("securitySchemes") or {}

    @property
    def security(self) -> List[Dict[str, Any]]:
        return self.raw.get("security") or []

    def deref(self, node: Any) -> Any:
        """Follow local ``$ref`` pointers until a concrete node is reached."""
        depth = 0
        while isinstance(node, dict) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if not ref.startswith("#/") or depth >= _MAX_REF_DEPTH:
                return node
            target: Any = self.raw
            for part in ref[2:].split("/"):
                part = part.replace("~1", "/").replace("~0", "~")
                if not isinstance(target, dict) or part not in target:
                    return node
                target = target[part]
            node = target
            depth += 1
        return node

    def operations(self, path_filter: str = "", method_filter: str = "") -> List[Operation]:
        """
        Operations matching both filters, sorted by path and then by
        GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS.
        """
        result: List[Operation] = []
        for path, item in (self.raw.get("paths") or {}).items():
            path = str(path)
            if not matches_path_filter(path, path_filter):
                continue
            item = self.deref(item) or {}
            for method in HTTP_METHODS:
                op = item.get(method)
                if not isinstance(op, dict) or not matches_method_filter(method, method_filter):
                    continue
                result.append(
                    Operation(
                        path=path,
                        method=method.upper(),
                        summary=op.get("summary") or "",
                        description=op.get("description") or "",
                        parameters=self._merge_parameters(item.get("parameters"), op.get("parameters")),
                        request_body=op.get("requestBody"),
                        responses=op.get("responses") or {},
                    )
                )

        result.sort(key=lambda op: (op.path, METHOD_ORDER.get(op.method, 999)))
        return result

    def _merge_parameters(self, path_params: Any, op_params: Any) -> List[Dict[str, Any]]:
        # Operation-level parameters override path-level ones with the same (in, name).
        merged: Dict[tuple, Dict[str, Any]] = {}
        for param in list(path_params or []) + list(op_params or []):
            param = self.deref(param)
            if isinstance(param, dict) and param.get("name") and param.get("in"):
                merged[(param["in"], param["name"])] = param
        return sorted(merged.values(), key=lambda p: (LOCATION_ORDER.get(p["in"], 999), p["name"]))

    def accept_types(self, operation: Operation) -> List[str]:
        """Response content types, 2xx first; all responses if no 2xx has content."""

        def collect(codes) -> List[str]:
            seen: List[str] = []
            for code in codes:
                response = self.deref(operation.responses[code] or {})
                for content_type in (response.get("content") or {}):
                    if content_type not in seen:
                        seen.append(content_type)
            return seen

        codes = [code for code in operation.responses if str(code) != "default"]
        types = collect([code for code in codes if str(code).startswith("2")])
        return types or collect(codes)
