"""Plain-text rendering of OpenAPI operations."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from qurl.openapi.document import Operation, OpenAPIDocument

PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")


def _schema_type(schema: Dict[str, Any]) -> str:
    value = schema.get("type")
    if isinstance(value, list):
        return next((t for t in value if t != "null"), value[0] if value else "")
    return value or ""


def _short_description(text: str) -> str:
    """First sentence when it is short, otherwise at most 100 characters."""
    idx = text.find(". ")
    if 0 < idx < 100:
        return text[: idx + 1]
    if len(text) > 100:
        return text[:97] + "..."
    return text


class Displayer:
    """Renders index and operation views for an ``OpenAPIDocument``."""

    def __init__(self, document: OpenAPIDocument):
        self.document = document

    # ── Index ────────────────────────────────────────────────────────────

    def render_index(self, operations: List[Operation]) -> str:
        if not operations:
            return "No paths found matching the filters"

        lines: List[str] = []
        info = self.document.info
        if info:
            title = str(info.get("title", ""))
            if info.get("version"):
                title += f" v{info['version']}"
            lines += [title, ""]
            description = info.get("description")
            if description:
                lines += [_short_description(str(description)), ""]

        auth = self.render_auth()
        if auth:
            lines += ["Authentication", "", auth, ""]

        lines += ["Endpoints", ""]
        current = None
        for op in operations:
            if op.path != current:
                if current is not None:
                    lines.append("")
                lines.append(op.path)
                current = op.path
            entry = f"  {op.method}"
            if op.summary:
                entry += f"  {op.summary}"
            lines.append(entry)

        return "\n".join(lines) + "\n"

    def render_auth(self) -> str:
        """Security requirements, alternatives joined with OR."""
        schemes = self.document.security_schemes
        security = self.document.security
        if not schemes or not security:
            return ""

        alternatives = []
        for requirement in security:
            names = list((requirement or {}).keys())
            if not names:
                alternatives.append("No authentication required")
                continue
            alternatives.append(" + ".join(self._describe_scheme(name, schemes.get(name)) for name in names))
        return " OR ".join(alternatives)

    def _describe_scheme(self, name: str, scheme: Optional[Dict[str, Any]]) -> str:
        scheme = self.document.deref(scheme) if scheme else None
        if not scheme or not scheme.get("type"):
            return name
        kind = scheme["type"]
        if kind == "http":
            return f"{name} ({scheme.get('scheme') or 'HTTP'})"
        if kind == "apiKey":
            return f"{name} (API Key in {scheme.get('in') or 'header'})"
        if kind == "oauth2":
            return f"{name} (OAuth2)"
        if kind == "openIdConnect":
            return f"{name} (OpenID Connect)"
        return f"{name} ({kind})"

    # ── Operation ────────────────────────────────────────────────────────

    def render_operation(self, op: Operation) -> str:
        lines: List[str] = [f"{op.method} {op.path}", ""]

        if op.summary:
            lines.append(op.summary)
        if op.description and op.description != op.summary:
            lines += ["", f"  {op.description}"]

        if op.parameters:
            lines += ["", "Parameters", ""]
            lines += self._render_parameters(op.parameters)

        if op.request_body:
            lines += ["", "Request Body", ""]
            lines += self._render_request_body(self.document.deref(op.request_body))

        if op.responses:
            lines += ["", "Responses", ""]
            lines += self._render_responses(op.responses)

        return "\n".join(lines).rstrip("\n") + "\n"

    def _render_parameters(self, parameters: List[Dict[str, Any]]) -> List[str]:
        lines: List[str] = []
        for location in PARAMETER_LOCATIONS:
            group = [p for p in parameters if p.get("in") == location]
            if not group:
                continue
            lines.append(f"{location.capitalize()} parameters:")
            for param in group:
                lines += self._render_parameter(param)
            lines.append("")
        return lines

    def _render_parameter(self, param: Dict[str, Any]) -> List[str]:
        entry = f"  • {param.get('name', '')}"
        if param.get("required"):
            entry += " *required"
        schema = self.document.deref(param.get("schema") or {})
        if _schema_type(schema):
            entry += f" {_schema_type(schema)}"
        if schema.get("format"):
            entry += f" ({schema['format']})"
        lines = [entry]
        if param.get("description"):
            lines.append(f"    {param['description']}")
        return lines

    def _render_request_body(self, body: Dict[str, Any]) -> List[str]:
        lines: List[str] = []
        if body.get("required"):
            lines += ["Required", ""]
        if body.get("description"):
            lines += [str(body["description"]), ""]

        # Only the first content type is shown.
        for content_type, media in (body.get("content") or {}).items():
            lines.append(f"Content Type: {content_type}")
            schema = (media or {}).get("schema")
            if schema:
                lines += ["", *self.render_schema(schema, 0)]
            break
        return lines

    def _render_responses(self, responses: Dict[str, Any]) -> List[str]:
        lines: List[str] = []
        codes = [code for code in responses if str(code) != "default"]
        if "default" in responses:
            codes.append("default")

        for code in codes:
            response = self.document.deref(responses[code] or {})
            entry = f"  {code}"
            if response.get("description"):
                entry += f" - {response['description']}"
            lines.append(entry)
            for content_type, media in (response.get("content") or {}).items():
                lines.append(f"    Content Type: {content_type}")
                schema = (media or {}).get("schema")
                if schema and str(code) == "200":
                    lines += self.render_schema(schema, 2)
                break
        return lines

    # ── Schemas ──────────────────────────────────────────────────────────

    def render_schema(self, schema: Dict[str, Any], indent: int, depth: int = 0) -> List[str]:
        schema = self.document.deref(schema)
        pad = "  " * indent
        lines: List[str] = []
        kind = _schema_type(schema)

        if kind == "object" or (not kind and "properties" in schema):
            lines.append(f"{pad}Example (JSON):")
            lines += self._json_example(schema, indent + 1)
        elif kind == "array":
            lines.append(f"{pad}Array of:")
            items = schema.get("items")
            if isinstance(items, dict) and depth < 8:
                lines += self.render_schema(items, indent + 1, depth + 1)
        elif kind:
            entry = f"{pad}Type: {kind}"
            if schema.get("format"):
                entry += f" ({schema['format']})"
            lines.append(entry)

        if schema.get("description"):
            lines.append(f"{pad}{schema['description']}")
        return lines

    def _json_example(self, schema: Dict[str, Any], indent: int) -> List[str]:
        pad = "  " * indent
        properties = schema.get("properties") or {}
        required = set(schema.get("required") or [])
        lines = [f"{pad}{{"]

        names = list(properties)
        for i, name in enumerate(names):
            prop = self.document.deref(properties[name] or {})
            entry = f'{pad}  "{name}": {self.example_value(prop)}'
            if i < len(names) - 1:
                entry += ","
            if name in required:
                entry += " // required"
            if prop.get("description"):
                entry += f" // {prop['description']}"
            lines.append(entry)

        lines.append(f"{pad}}}")
        return lines

    def example_value(self, schema: Dict[str, Any], depth: int = 0) -> str:
        """A JSON literal illustrating ``schema``."""
        schema = self.document.deref(schema)
        if "example" in schema:
            return json.dumps(schema["example"], ensure_ascii=False, default=str)

        kind = _schema_type(schema)
        fmt = schema.get("format", "")
        if kind == "string":
            if fmt == "date-time":
                return '"2024-01-01T00:00:00Z"'
            if fmt == "date":
                return '"2024-01-01"'
            if fmt == "email":
                return '"user@example.com"'
            if fmt in ("uri", "url"):
                return '"https://example.com"'
            if schema.get("enum"):
                return json.dumps(schema["enum"][0], ensure_ascii=False, default=str)
            return '"string"'
        if kind == "number":
            return "1.5" if fmt == "float" else "123.45"
        if kind == "integer":
            if fmt == "int64":
                return "12345"
            if fmt == "int32":
                return "123"
            return "1"
        if kind == "boolean":
            return "true"
        if kind == "array":
            items = schema.get("items")
            if isinstance(items, dict) and depth < 8:
                return f"[{self.example_value(items, depth + 1)}]"
            return "[]"
        if kind == "object":
            return "{}"
        return "null"
