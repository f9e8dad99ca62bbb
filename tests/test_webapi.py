"""HTTP surface tests: routing, CORS, health, index page and /convert."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest
from httpx import ASGITransport, AsyncClient

from c4_drawio_service.conversion import LayoutDirection
from c4_drawio_service.settings import Settings
from c4_drawio_service.webapi import create_app
from conftest import C4_SAMPLE, RecordingConverter

CORS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, OPTIONS",
    "access-control-allow-headers": "Content-Type",
}


def assert_cors(response, origin: str = "*") -> None:
    expected = dict(CORS, **{"access-control-allow-origin": origin})
    for name, value in expected.items():
        assert response.headers.get(name) == value, name


class TestRouting:
    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE"])
    @pytest.mark.parametrize("path", ["/missing", "/convert/extra", "/health/", "/docs", "/openapi.json"])
    async def test_unknown_paths_are_404_with_cors(self, client: AsyncClient, method: str, path: str) -> None:
        response = await client.request(method, path)

        assert response.status_code == 404
        assert response.text == "Not Found"
        assert_cors(response)

    @pytest.mark.parametrize("path", ["/", "/health", "/convert", "/anything/else"])
    async def test_options_preflight_for_any_path(self, client: AsyncClient, path: str) -> None:
        response = await client.options(
            path,
            headers={"Origin": "https://example.org", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)

    async def test_configured_origin_is_used(self, recorder: RecordingConverter) -> None:
        app = create_app(Settings(cors_origin="https://diagrams.example"), converter=recorder)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            preflight = await ac.options("/convert")
            missing = await ac.get("/nope")

        assert_cors(preflight, origin="https://diagrams.example")
        assert_cors(missing, origin="https://diagrams.example")


class TestHealthAndIndex:
    async def test_health_reports_status_and_version(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"status": "ok", "version": "1.0.0"}
        assert_cors(response)

    async def test_index_serves_html(self, client: AsyncClient) -> None:
        response = await client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/html; charset=utf-8"
        assert "<!DOCTYPE html>" in response.text
        assert "/convert" in response.text
        assert_cors(response)

    async def test_index_is_identical_across_calls(self, client: AsyncClient) -> None:
        first = await client.get("/")
        second = await client.get("/")

        assert first.content == second.content


class TestConvertValidation:
    async def test_wrong_method_is_405(self, recording_client: AsyncClient, recorder: RecordingConverter) -> None:
        response = await recording_client.get("/convert")

        assert response.status_code == 405
        assert "Method not allowed" in response.text
        assert_cors(response)
        assert recorder.calls == []

    @pytest.mark.parametrize("body", ["", "   ", "\n\t  \n"])
    async def test_empty_body_is_400(self, recording_client: AsyncClient, recorder: RecordingConverter, body: str) -> None:
        response = await recording_client.post("/convert", content=body)

        assert response.status_code == 400
        assert "Empty input" in response.text
        assert_cors(response)
        assert recorder.calls == []

    async def test_declared_length_over_limit_is_413(self, recorder: RecordingConverter) -> None:
        app = create_app(Settings(max_input_size=100), converter=recorder)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/convert", content=b"x", headers={"Content-Length": "101"})

        assert response.status_code == 413
        assert response.text == "Input too large. Maximum size: 100 bytes"
        assert_cors(response)
        assert recorder.calls == []

    async def test_default_limit_is_100_kib(self, client: AsyncClient) -> None:
        response = await client.post("/convert", content=b"x", headers={"Content-Length": str(100 * 1024 + 1)})

        assert response.status_code == 413
        assert "102400" in response.text

    async def test_body_over_limit_is_413_even_with_small_declared_length(self, recorder: RecordingConverter) -> None:
        app = create_app(Settings(max_input_size=100), converter=recorder)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/convert", content=b"a" * 500, headers={"Content-Length": "10"})

        assert response.status_code == 413
        assert_cors(response)
        assert recorder.calls == []

    async def test_unparseable_content_length_counts_as_zero(
        self, recording_client: AsyncClient, recorder: RecordingConverter
    ) -> None:
        response = await recording_client.post(
            "/convert", content=b"System(s, \"S\")", headers={"Content-Length": "lots"}
        )

        assert response.status_code == 200
        assert len(recorder.calls) == 1

    async def test_invalid_direction_is_400(self, recording_client: AsyncClient, recorder: RecordingConverter) -> None:
        response = await recording_client.post("/convert?direction=XX", content=C4_SAMPLE)

        assert response.status_code == 400
        assert "Invalid direction 'XX'" in response.text
        assert_cors(response)
        assert recorder.calls == []


class TestConvertOptions:
    async def test_defaults_are_passed_to_converter(
        self, recording_client: AsyncClient, recorder: RecordingConverter
    ) -> None:
        response = await recording_client.post("/convert", content=C4_SAMPLE)

        assert response.status_code == 200
        source, options = recorder.calls[0]
        assert source == C4_SAMPLE
        assert options.layout_direction is LayoutDirection.TB
        assert (options.nodesep, options.ranksep, options.marginx, options.marginy) == (60, 80, 20, 20)

    async def test_query_parameters_are_parsed(
        self, recording_client: AsyncClient, recorder: RecordingConverter
    ) -> None:
        await recording_client.post(
            "/convert?direction=lr&nodesep=10&ranksep=200&marginx=0&marginy=5", content=C4_SAMPLE
        )

        _, options = recorder.calls[0]
        assert options.layout_direction is LayoutDirection.LR
        assert (options.nodesep, options.ranksep, options.marginx, options.marginy) == (10, 200, 0, 5)

    async def test_unparseable_numbers_fall_back_to_defaults(
        self, recording_client: AsyncClient, recorder: RecordingConverter
    ) -> None:
        response = await recording_client.post("/convert?nodesep=abc&ranksep=-5&marginx=1.5", content=C4_SAMPLE)

        assert response.status_code == 200
        _, options = recorder.calls[0]
        assert options.nodesep == 60
        assert options.ranksep == 80
        assert options.marginx == 20


class TestConvertResponses:
    async def test_success_headers(self, recording_client: AsyncClient) -> None:
        response = await recording_client.post("/convert", content=C4_SAMPLE)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/xml"
        assert response.headers["content-disposition"] == 'attachment; filename="diagram.drawio"'
        assert response.text == "<mxfile/>"
        assert_cors(response)

    async def test_converter_error_is_500_with_message(self) -> None:
        failing = RecordingConverter(error=RuntimeError("bad diagram"))
        app = create_app(Settings(), converter=failing)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/convert", content=C4_SAMPLE)

        assert response.status_code == 500
        assert response.text == "Conversion error: bad diagram"
        assert_cors(response)

    async def test_converter_error_without_message_uses_fallback(self) -> None:
        failing = RecordingConverter(error=RuntimeError())
        app = create_app(Settings(), converter=failing)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/convert", content=C4_SAMPLE)

        assert response.status_code == 500
        assert response.text == "Conversion error: Unknown error"


class TestConvertEndToEnd:
    async def test_sample_diagram_converts_to_drawio(self, client: AsyncClient) -> None:
        response = await client.post("/convert", content=C4_SAMPLE)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/xml"
        root = ET.fromstring(response.text)
        assert root.tag == "mxfile"
        names = {obj.get("c4Name") for obj in root.iter("object")}
        assert {"U", "S"} <= names
        edges = [cell for cell in root.iter("mxCell") if cell.get("edge") == "1"]
        assert len(edges) == 1
        assert edges[0].get("source") == "c4-u"
        assert edges[0].get("target") == "c4-s"

    @pytest.mark.parametrize("source", [
        '@startuml\nDeployment_Node(dn, "Server") {\n  Container(api, "API", "Python")\n}\n@enduml',
        '@startuml\npackage "Core" { System(api, "API") }\n@enduml',
    ])
    async def test_plain_plantuml_blocks_convert(self, client: AsyncClient, source: str) -> None:
        response = await client.post("/convert", content=source)

        assert response.status_code == 200
        names = {obj.get("c4Name") for obj in ET.fromstring(response.text).iter("object")}
        assert "API" in names

    async def test_control_characters_still_give_well_formed_xml(self, client: AsyncClient) -> None:
        response = await client.post("/convert", content='System(s, "A\x01B")')

        assert response.status_code == 200
        names = {obj.get("c4Name") for obj in ET.fromstring(response.text).iter("object")}
        assert names == {"AB"}

    async def test_unknown_alias_is_conversion_error(self, client: AsyncClient) -> None:
        response = await client.post("/convert", content='System(a, "A")\nRel(a, ghost, "Calls")')

        assert response.status_code == 500
        assert response.text.startswith("Conversion error: ")
        assert "ghost" in response.text
        assert_cors(response)

    async def test_input_without_elements_is_conversion_error(self, client: AsyncClient) -> None:
        response = await client.post("/convert", content="@startuml\nskinparam monochrome true\n@enduml")

        assert response.status_code == 500
        assert response.text == "Conversion error: No C4 elements found in input"
