"""HTTP-level tests for the assembled application."""

import json

import pytest
from conftest import ECHO_MODULE, PING_MODULE, TEST_CREATOR, module_source
from fastapi.testclient import TestClient

from rynn_api.api.config import SiteSettings
from rynn_api.api.errors import FALLBACK_NOT_FOUND_BODY, FALLBACK_SERVER_ERROR_BODY, SettingsError
from rynn_api.api.server import create_app


def _client(site, **config_overrides) -> TestClient:
    return TestClient(create_app(site.config(**config_overrides)), raise_server_exceptions=False)


def test_ping_echo_scenario(site):
    """Test the ping/echo scenario end to end."""
    site.add_module("util/ping.py", PING_MODULE)
    site.add_module("util/echo.py", ECHO_MODULE)
    client = _client(site)

    ping = client.get("/api/ping")
    assert ping.status_code == 200
    assert ping.json() == {"status": 200, "creator": TEST_CREATOR, "message": "pong"}

    echo = client.post("/api/echo", json={"x": 1})
    assert echo.status_code == 201
    assert echo.json() == {"status": 201, "creator": TEST_CREATOR, "x": 1}

    info = client.get("/api/info")
    assert info.status_code == 200
    data = info.json()
    assert data["status"] == 200
    assert data["creator"] == TEST_CREATOR
    assert [c["name"] for c in data["categories"]] == ["util"]
    items = data["categories"][0]["items"]
    assert {item["path"] for item in items} == {"/api/ping", "/api/echo"}
    assert {item["method"] for item in items} == {"get", "post"}


def test_json_is_indented(site):
    """Test JSON responses are rendered with two-space indentation."""
    site.add_module("ping.py", PING_MODULE)
    client = _client(site)

    response = client.get("/api/ping")

    assert response.text == json.dumps(
        {"status": 200, "creator": TEST_CREATOR, "message": "pong"}, indent=2
    )


def test_info_paths_match_bound_routes(site):
    """Test the catalog lists exactly the successfully bound routes."""
    site.add_module("a/one.py", module_source("One", "/one", category="a"))
    site.add_module("a/two.py", module_source("Two", "/two?x=", category="b"))
    site.add_module("a/three.py", module_source("Three", "/one", category="a"))
    site.add_module("b/bad.py", "meta = {'name': 'Bad'}\ndef on_start(ctx):\n    pass\n")
    site.add_module("b/boom.py", "raise RuntimeError('boom')\n")
    app = create_app(site.config())
    client = TestClient(app)

    data = client.get("/api/info").json()

    listed = [item["path"] for category in data["categories"] for item in category["items"]]
    assert sorted(listed) == sorted(app.state.catalog.paths())
    assert sorted(listed) == ["/api/one", "/api/two?x="]
    assert len(app.state.discovery_report.failures) == 3


def test_info_default_category(site):
    """Test modules without a category appear under the default category."""
    site.add_module("plain.py", module_source("Plain", "/plain"))
    client = _client(site)

    data = client.get("/api/info").json()

    assert data["categories"] == [
        {
            "name": "uncategorized",
            "items": [
                {"name": "Plain", "desc": None, "path": "/api/plain", "author": None, "method": "get"}
            ],
        }
    ]


def test_info_with_no_modules(site):
    """Test the catalog is empty when nothing loaded."""
    client = _client(site)

    assert client.get("/api/info").json() == {
        "status": 200,
        "creator": TEST_CREATOR,
        "categories": [],
    }


@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "PATCH", "DELETE"])
def test_unregistered_route_is_404(site, method):
    """Test any unregistered method and path returns the fallback 404 body."""
    site.add_module("ping.py", PING_MODULE)
    client = _client(site)

    response = client.request(method, "/api/nothing-here")

    assert response.status_code == 404
    assert response.text == FALLBACK_NOT_FOUND_BODY


def test_wrong_method_on_bound_path_is_404(site):
    """Test a bound path with an unbound method is a 404, not a 405."""
    site.add_module("ping.py", PING_MODULE)
    client = _client(site)

    response = client.post("/api/ping", json={})

    assert response.status_code == 404
    assert response.text == FALLBACK_NOT_FOUND_BODY


def test_custom_404_page(site):
    """Test the web directory's 404 page is used when present."""
    site.add_page("404.html", "<h1>custom missing</h1>")
    client = _client(site)

    for method in ("GET", "POST", "DELETE"):
        response = client.request(method, "/api/missing")
        assert response.status_code == 404
        assert "custom missing" in response.text


def test_handler_error_is_500(site, caplog):
    """Test a handler exception becomes a 500 with a static body."""
    site.add_module(
        "explode.py",
        module_source("Explode", "/explode", body="raise ValueError('secret internals')"),
    )
    client = _client(site)

    response = client.get("/api/explode")

    assert response.status_code == 500
    assert response.text == FALLBACK_SERVER_ERROR_BODY
    assert "secret internals" not in response.text
    assert "secret internals" in caplog.text
    assert "Traceback" in caplog.text


def test_handler_error_uses_custom_500_page(site):
    """Test the web directory's 500 page is used when present."""
    site.add_page("500.html", "<h1>custom failure</h1>")
    site.add_module("explode.py", module_source("Explode", "/explode", body="1 / 0"))
    client = _client(site)

    response = client.get("/api/explode")

    assert response.status_code == 500
    assert "custom failure" in response.text


def test_handler_error_does_not_affect_other_routes(site):
    """Test one failing handler leaves the others serving."""
    site.add_module("explode.py", module_source("Explode", "/explode", body="1 / 0"))
    site.add_module("ping.py", PING_MODULE)
    client = _client(site)

    assert client.get("/api/explode").status_code == 500
    assert client.get("/api/ping").json()["message"] == "pong"


def test_async_handler(site):
    """Test coroutine handlers are awaited."""
    site.add_module(
        "slow.py",
        """
        import asyncio

        meta = {"name": "Slow", "path": "/slow"}


        async def on_start(ctx):
            await asyncio.sleep(0)
            ctx.res.json({"done": True})
        """,
    )
    client = _client(site)

    assert client.get("/api/slow").json() == {"status": 200, "creator": TEST_CREATOR, "done": True}


def test_array_payload_passthrough(site):
    """Test an array payload is sent without the envelope."""
    site.add_module("list.py", module_source("List", "/list", body="ctx.res.json([1, 2, 3])"))
    client = _client(site)

    response = client.get("/api/list")

    assert response.json() == [1, 2, 3]
    assert response.text == json.dumps([1, 2, 3], indent=2)


def test_scalar_payload_passthrough(site):
    """Test a scalar payload is sent without the envelope."""
    site.add_module("num.py", module_source("Num", "/num", body="ctx.res.json(42)"))
    client = _client(site)

    assert client.get("/api/num").text == "42"


def test_query_and_path_params(site):
    """Test handlers receive path parameters and the query string."""
    site.add_module(
        "user.py",
        module_source(
            "User",
            "/users/:id?verbose=",
            body='ctx.res.json({"id": ctx.params["id"], "verbose": ctx.query.get("verbose")})',
        ),
    )
    client = _client(site)

    response = client.get("/api/users/42", params={"verbose": "yes"})

    assert response.json()["id"] == "42"
    assert response.json()["verbose"] == "yes"
    info = client.get("/api/info").json()
    assert info["categories"][0]["items"][0]["path"] == "/api/users/:id?verbose="


def test_form_body(site):
    """Test URL-encoded bodies are parsed into a dict."""
    site.add_module(
        "form.py",
        module_source("Form", "/form", method="post", body='ctx.res.json({"got": ctx.body})'),
    )
    client = _client(site)

    response = client.post("/api/form", data={"a": "1", "b": "two"})

    assert response.json()["got"] == {"a": "1", "b": "two"}


def test_invalid_json_body_is_400(site):
    """Test a malformed JSON body is rejected before the handler runs."""
    site.add_module("echo.py", ECHO_MODULE)
    client = _client(site)

    response = client.post(
        "/api/echo", content=b"{not json", headers={"content-type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {
        "status": 400,
        "creator": TEST_CREATOR,
        "message": "Invalid JSON body",
    }


def test_handler_without_response_is_204(site):
    """Test a handler that writes nothing yields no content."""
    site.add_module("quiet.py", module_source("Quiet", "/quiet", body="pass"))
    client = _client(site)

    response = client.get("/api/quiet")

    assert response.status_code == 204
    assert response.content == b""


def test_module_cannot_claim_info_route(site):
    """Test a module declaring GET /info is rejected as a conflict."""
    site.add_module("info.py", module_source("Fake Info", "/info", body='ctx.res.json({"fake": True})'))
    app = create_app(site.config())
    client = TestClient(app)

    data = client.get("/api/info").json()

    assert "fake" not in data
    assert data["categories"] == []
    assert app.state.discovery_report.failures[0].kind.value == "route_conflict"


def test_param_module_does_not_shadow_info(site):
    """Test /api/:name modules do not capture /api/info."""
    site.add_module("any.py", module_source("Any", "/:name", body='ctx.res.json({"any": True})'))
    client = _client(site)

    assert "categories" in client.get("/api/info").json()
    assert client.get("/api/else").json()["any"] is True


def test_settings_json_served_raw(site):
    """Test /settings.json returns the file bytes without the envelope."""
    raw = site.settings_path.read_bytes()
    client = _client(site)

    response = client.get("/settings.json")

    assert response.status_code == 200
    assert response.content == raw
    assert "status" not in response.json()


def test_named_pages_served(site):
    """Test the configured static pages are served without the extension."""
    site.add_page("portal.html", "<h1>portal</h1>")
    site.add_page("docs.html", "<h1>docs</h1>")
    client = _client(site)

    assert client.get("/portal").text == "<h1>portal</h1>"
    assert client.get("/docs").text == "<h1>docs</h1>"
    assert client.get("/test-post").status_code == 404


def test_static_files_served(site):
    """Test files in the web directory are served as-is."""
    site.add_page("style.css", "body {}")
    client = _client(site)

    response = client.get("/style.css")

    assert response.status_code == 200
    assert response.text == "body {}"


def test_missing_settings_aborts_startup(site):
    """Test startup fails clearly without a settings document."""
    site.settings_path.unlink()

    with pytest.raises(SettingsError, match="settings.json"):
        create_app(site.config())


def test_explicit_site_settings(site):
    """Test settings passed in code take precedence over the file."""
    site.add_module("ping.py", PING_MODULE)
    app = create_app(site.config(), SiteSettings(api_settings={"creator": "Inline"}))
    client = TestClient(app)

    assert client.get("/api/ping").json()["creator"] == "Inline"


def test_cors_headers(site):
    """Test CORS headers are added for cross-origin requests."""
    site.add_module("ping.py", PING_MODULE)
    client = _client(site)

    response = client.get("/api/ping", headers={"Origin": "http://example.com"})

    assert response.headers["access-control-allow-origin"] == "*"
