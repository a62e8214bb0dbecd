"""Tests for OpenAPI loading, querying and rendering."""

import httpx
import pytest
import yaml

from conftest import PETSTORE
from qurl.errors import ErrorKind, QurlError
from qurl.openapi import NO_ENDPOINTS_MESSAGE, OpenAPIDocument, OpenAPIViewer
from qurl.openapi.display import Displayer
from qurl.openapi.document import matches_method_filter, matches_path_filter, parse_document
from qurl.openapi.viewer import file_uri_path

SPEC_URL = "https://specs.example.com/petstore.yaml"


@pytest.fixture
def document():
    return OpenAPIDocument(PETSTORE)


@pytest.fixture
def viewer(petstore_file):
    return OpenAPIViewer(str(petstore_file))


def remote_viewer(document=PETSTORE, status=200, calls=None):
    body = yaml.safe_dump(document).encode()

    def handler(request):
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(status, content=body)

    return OpenAPIViewer(SPEC_URL, client=httpx.Client(transport=httpx.MockTransport(handler)))


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class TestFilters:
    def test_path_filter(self):
        assert matches_path_filter("/pets", "")
        assert matches_path_filter("/pets", "*")
        assert matches_path_filter("/pets/{id}", "/pets*")
        assert matches_path_filter("/pets", "/pets")
        assert not matches_path_filter("/pets/{id}", "/pets")

    def test_method_filter(self):
        assert matches_method_filter("get", "ANY")
        assert matches_method_filter("get", "any")
        assert matches_method_filter("get", "")
        assert matches_method_filter("delete", "GET, DELETE")
        assert not matches_method_filter("post", "GET,DELETE")


class TestParseDocument:
    def test_json_is_accepted(self):
        assert parse_document(b'{"openapi": "3.0.0"}') == {"openapi": "3.0.0"}

    def test_invalid_yaml(self):
        with pytest.raises(QurlError) as exc_info:
            parse_document(b"paths: [unclosed")
        assert exc_info.value.kind == ErrorKind.OPENAPI

    def test_non_mapping(self):
        with pytest.raises(QurlError):
            parse_document(b"- just\n- a list\n")


class TestOpenAPIDocument:
    def test_operations_are_sorted(self, document):
        ops = [(op.path, op.method) for op in document.operations()]
        assert ops == [
            ("/owners", "GET"),
            ("/pets", "GET"),
            ("/pets", "POST"),
            ("/pets/{petId}", "GET"),
            ("/pets/{petId}", "DELETE"),
        ]

    def test_operations_filtered(self, document):
        ops = document.operations("/pets*", "DELETE")
        assert [(op.path, op.method) for op in ops] == [("/pets/{petId}", "DELETE")]

    def test_parameters_are_dereferenced_and_merged(self, document):
        get_pets = document.operations("/pets", "GET")[0]
        assert [p["name"] for p in get_pets.parameters] == ["limit"]
        get_pet = document.operations("/pets/{petId}", "GET")[0]
        assert get_pet.parameters[0]["in"] == "path"

    def test_operation_parameter_overrides_path_parameter(self):
        doc = OpenAPIDocument(
            {
                "paths": {
                    "/x/{id}": {
                        "parameters": [{"name": "id", "in": "path", "description": "outer"}],
                        "get": {"parameters": [{"name": "id", "in": "path", "description": "inner"}]},
                    }
                }
            }
        )
        params = doc.operations()[0].parameters
        assert len(params) == 1
        assert params[0]["description"] == "inner"

    def test_accept_types_prefer_2xx(self, document):
        get_pets = document.operations("/pets", "GET")[0]
        assert document.accept_types(get_pets) == ["application/json", "application/xml"]

    def test_accept_types_fall_back_to_other_responses(self, document):
        delete = document.operations("/pets/{petId}", "DELETE")[0]
        assert document.accept_types(delete) == ["text/plain"]

    def test_circular_ref_stops(self):
        doc = OpenAPIDocument({"a": {"$ref": "#/a"}})
        assert doc.deref({"$ref": "#/a"}) == {"$ref": "#/a"}

    def test_unknown_ref_is_left_alone(self, document):
        assert document.deref({"$ref": "#/components/schemas/Missing"}) == {"$ref": "#/components/schemas/Missing"}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestDisplayer:
    def test_index(self, document):
        text = Displayer(document).render_index(document.operations())
        lines = text.split("\n")
        assert lines[0] == "Petstore v1.2.0"
        assert "A sample pet store." in lines
        assert "apiKey (API Key in header)" in lines
        assert "Endpoints" in lines
        assert "  GET  List pets" in lines
        assert "  DELETE  Delete a pet" in lines
        assert lines.index("/owners") < lines.index("/pets") < lines.index("/pets/{petId}")

    def test_index_without_matches(self, document):
        assert Displayer(document).render_index([]) == "No paths found matching the filters"

    def test_auth_alternatives(self):
        doc = OpenAPIDocument(
            {
                "components": {
                    "securitySchemes": {
                        "bearer": {"type": "http", "scheme": "bearer"},
                        "key": {"type": "apiKey", "in": "query", "name": "k"},
                        "oauth": {"type": "oauth2"},
                    }
                },
                "security": [{"bearer": [], "key": []}, {"oauth": []}, {}],
            }
        )
        assert Displayer(doc).render_auth() == (
            "bearer (bearer) + key (API Key in query) OR oauth (OAuth2) OR No authentication required"
        )

    def test_operation_with_parameters_and_responses(self, document):
        op = document.operations("/pets", "GET")[0]
        text = Displayer(document).render_operation(op)
        assert text.startswith("GET /pets\n\nList pets\n")
        assert "Query parameters:\n  • limit integer (int32)\n" in text
        assert "  200 - A list of pets\n    Content Type: application/json\n    Array of:\n" in text
        assert '"id": 12345,' in text
        assert text.index("  200 - ") < text.index("  default - Error")

    def test_path_parameter_required(self, document):
        op = document.operations("/pets/{petId}", "GET")[0]
        text = Displayer(document).render_operation(op)
        assert "Path parameters:\n  • petId *required string\n" in text
        assert "  Returns a single pet by id." in text
        assert "  404 - Not found\n    Content Type: text/plain" in text

    def test_request_body_example(self, document):
        op = document.operations("/pets", "POST")[0]
        text = Displayer(document).render_operation(op)
        assert "Request Body\n\nRequired\n\nContent Type: application/json\n\nExample (JSON):\n" in text
        assert '"name": "string" // required // Pet name' in text

    def test_example_values(self, document):
        displayer = Displayer(document)
        assert displayer.example_value({"type": "string", "format": "date-time"}) == '"2024-01-01T00:00:00Z"'
        assert displayer.example_value({"type": "string", "enum": ["a", "b"]}) == '"a"'
        assert displayer.example_value({"type": "boolean"}) == "true"
        assert displayer.example_value({"type": "array", "items": {"type": "integer"}}) == "[1]"
        assert displayer.example_value({"example": {"k": 1}}) == '{"k": 1}'


# ---------------------------------------------------------------------------
# Viewer
# ---------------------------------------------------------------------------


class TestViewerLoading:
    def test_plain_path(self, viewer):
        assert viewer.get_servers() == ["https://petstore.example.com/v1", "/relative"]

    def test_file_uri(self, petstore_file):
        assert OpenAPIViewer(petstore_file.as_uri()).load().info["title"] == "Petstore"

    def test_file_uri_path(self):
        assert file_uri_path("file:///tmp/spec.yaml") == "/tmp/spec.yaml"

    def test_missing_file(self, tmp_path):
        with pytest.raises(QurlError) as exc_info:
            OpenAPIViewer(str(tmp_path / "missing.yaml")).load()
        assert exc_info.value.kind == ErrorKind.OPENAPI

    def test_remote_is_fetched_once(self):
        calls = []
        viewer = remote_viewer(calls=calls)
        viewer.get_servers()
        viewer.view("*", "ANY")
        assert calls == [SPEC_URL]

    def test_remote_non_200(self):
        with pytest.raises(QurlError) as exc_info:
            remote_viewer(status=404).load()
        assert exc_info.value.kind == ErrorKind.OPENAPI
        assert "unexpected status code: 404" in str(exc_info.value)

    def test_no_url(self):
        with pytest.raises(QurlError) as exc_info:
            OpenAPIViewer("").load()
        assert exc_info.value.kind == ErrorKind.CONFIG


class TestViewerServers:
    def test_base_url_is_first_server(self, viewer):
        assert viewer.base_url() == "https://petstore.example.com/v1"

    def test_relative_first_server_is_anchored(self):
        doc = dict(PETSTORE, servers=[{"url": "/api"}])
        assert remote_viewer(doc).base_url() == "https://specs.example.com/api"

    def test_no_servers_uses_spec_origin(self):
        doc = {k: v for k, v in PETSTORE.items() if k != "servers"}
        assert remote_viewer(doc).base_url() == "https://specs.example.com"

    def test_absolute_url(self):
        assert remote_viewer().absolute_url("relative") == "https://specs.example.com/relative"

    def test_file_spec_cannot_anchor(self, viewer):
        with pytest.raises(QurlError) as exc_info:
            viewer.absolute_url("/relative")
        assert exc_info.value.kind == ErrorKind.OPENAPI


class TestViewerHeaders:
    def test_accept_from_exact_match(self, viewer):
        request = httpx.Request("GET", "https://petstore.example.com/v1/pets")
        viewer.set_headers(request, "/pets", "get")
        assert request.headers["Accept"] == "application/json, application/xml"

    def test_no_match_leaves_headers(self, viewer):
        request = httpx.Request("GET", "https://petstore.example.com/v1/pets/1")
        viewer.set_headers(request, "/pets/1", "GET")
        assert "Accept" not in request.headers

    def test_no_content_leaves_headers(self, viewer):
        request = httpx.Request("GET", "https://petstore.example.com/v1/owners")
        viewer.set_headers(request, "/owners", "GET")
        assert "Accept" not in request.headers


class TestViewerView:
    def test_single_exact_match_renders_operation(self, viewer):
        assert viewer.view("/pets", "GET").startswith("GET /pets\n")

    def test_method_list(self, viewer):
        assert viewer.view("/pets", "DELETE,GET").startswith("GET /pets\n")

    def test_several_exact_matches_render_index(self, viewer):
        text = viewer.view("/pets", "ANY")
        assert "  GET  List pets" in text
        assert "  POST  Create a pet" in text
        assert "/pets/{petId}" not in text

    def test_trailing_slash_lists_subtree(self, viewer):
        text = viewer.view("/pets/", "ANY")
        assert "/pets/{petId}" in text
        assert "/owners" not in text

    def test_star_lists_everything(self, viewer):
        text = viewer.view("*", "ANY")
        assert "/owners" in text and "/pets/{petId}" in text

    def test_no_match(self, viewer):
        assert viewer.view("/nothing", "GET") == NO_ENDPOINTS_MESSAGE
