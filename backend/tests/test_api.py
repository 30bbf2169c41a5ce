"""
Pattern Scan — API Tests

Tests for:
- Health check and response headers
- Stateless overlay computation and HTML export
- Chart session render / read / viewport / delete
- Scan payload normalization endpoint
- Error response shape (400 / 404 / 422)
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from patternscan.main import app

client = TestClient(app)

DAY = 24 * 60 * 60
T0 = 1_700_000_000


def _candles(n: int = 60) -> list[dict]:
    rows = []
    for i in range(n):
        low = 100 + abs(i - n // 2)
        rows.append({"time": T0 + i * DAY, "open": low + 1, "high": low + 3, "low": low, "close": low + 2})
    return rows


def _body(markers: list[dict], title: str = "TCS - Bowl", **extra) -> dict:
    return {"price_data": _candles(), "markers": markers, "title": title, **extra}


BOWL = {"time": T0 + 30 * DAY, "pattern_id": 1}
NRB = {
    "time": T0 + 40 * DAY, "nrb_id": 3,
    "range_low": 105, "range_high": 112,
    "range_start_time": T0 + 35 * DAY, "range_end_time": T0 + 40 * DAY,
}
BREAK = {"time": T0 + 41 * DAY, "direction": "Bullish Break", "text": "NRB"}


# ═══════════════════════════════════════════════
#  HEALTH
# ═══════════════════════════════════════════════


class TestHealth:

    def test_health(self):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"
        assert data["chart_sessions"] >= 0

    def test_headers(self):
        r = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert r.headers["X-Request-ID"] == "req-123"
        assert r.headers["X-API-Version"] == "v1"


# ═══════════════════════════════════════════════
#  OVERLAYS
# ═══════════════════════════════════════════════


class TestOverlays:

    def test_compute_overlays(self):
        r = client.post("/v1/api/overlays", json=_body([BOWL, NRB, BREAK]))
        assert r.status_code == 200
        data = r.json()

        keys = [s["key"] for s in data["series"]]
        assert keys == ["pattern:1", "range:3-high", "range:3-low"]
        assert data["created"] == keys
        assert data["cleared"] == []

        high = data["series"][1]
        assert [p["value"] for p in high["points"]] == [112, 112]
        assert high["style"]["line_style"] == 2

        [marker] = data["markers"]
        assert marker["position"] == "belowBar"
        assert marker["shape"] == "arrowUp"
        assert marker["text"] == ""

    def test_nrb_title_draws_no_bowls(self):
        r = client.post("/v1/api/overlays", json=_body([BOWL], title="TCS - Narrow Range Break"))
        data = r.json()
        assert data["series"] == []
        assert len(data["markers"]) == 1

    def test_empty_price_data(self):
        r = client.post("/v1/api/overlays", json={"price_data": [], "markers": [BOWL, BREAK]})
        assert r.status_code == 200
        assert r.json()["series"] == []
        assert r.json()["markers"] == []

    def test_week52_and_parameter(self):
        body = _body(
            [], series="ema50",
            series_data=[{"time": T0, "value": 101}, {"time": T0 + DAY, "value": 102}],
            week52_high=140,
        )
        data = client.post("/v1/api/overlays", json=body).json()
        assert [s["key"] for s in data["series"]] == ["parameter:ema50", "week52:high"]

    def test_html_export(self):
        r = client.post("/v1/api/overlays/html", json=_body([BOWL, BREAK]))
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/html")
        assert "plotly" in r.text.lower()


# ═══════════════════════════════════════════════
#  CHART SESSIONS
# ═══════════════════════════════════════════════


class TestChartSessions:

    def test_render_cycle_reports_changes(self):
        first = client.post("/v1/api/charts/api-cycle/render", json=_body([BOWL, NRB])).json()
        assert sorted(first["created"]) == ["pattern:1", "range:3-high", "range:3-low"]

        second = client.post("/v1/api/charts/api-cycle/render", json=_body([NRB])).json()
        assert second["cleared"] == ["pattern:1"]
        assert sorted(second["updated"]) == ["range:3-high", "range:3-low"]
        assert second["created"] == []

        state = client.get("/v1/api/charts/api-cycle").json()
        assert [s["key"] for s in state["series"]] == ["range:3-high", "range:3-low"]

    def test_viewport(self):
        client.post("/v1/api/charts/api-viewport/render", json=_body([BOWL]))
        r = client.post("/v1/api/charts/api-viewport/viewport", json={"width": 900})
        assert r.status_code == 200
        assert r.json() == {"chart_id": "api-viewport", "width": 900}

        state = client.get("/v1/api/charts/api-viewport").json()
        assert [s["key"] for s in state["series"]] == ["pattern:1"]

    def test_viewport_validation(self):
        client.post("/v1/api/charts/api-viewport-bad/render", json=_body([]))
        r = client.post("/v1/api/charts/api-viewport-bad/viewport", json={"width": 0})
        assert r.status_code == 422

    def test_delete(self):
        client.post("/v1/api/charts/api-delete/render", json=_body([BOWL]))
        r = client.delete("/v1/api/charts/api-delete")
        assert r.status_code == 200
        assert r.json() == {"chart_id": "api-delete", "dropped": True}
        assert client.delete("/v1/api/charts/api-delete").status_code == 404

    def test_unknown_chart(self):
        assert client.get("/v1/api/charts/never-rendered").status_code == 404
        r = client.post("/v1/api/charts/never-rendered/viewport", json={"width": 800})
        assert r.status_code == 404


# ═══════════════════════════════════════════════
#  SCANS
# ═══════════════════════════════════════════════


class TestScanNormalize:

    def test_normalize_triggers(self):
        r = client.post(
            "/v1/api/scans/normalize",
            params={"scrip": "tcs", "pattern": "Bowl", "parameter": "ema50"},
            json={"triggers": [{"time": T0, "pattern_id": "3"}, {"time": "later"}]},
        )
        assert r.status_code == 200
        data = r.json()
        assert data["title"] == "TCS - Bowl [EMA50]"
        assert data["payload"]["scrip"] == "TCS"
        assert data["payload"]["series"] == "ema50"
        assert [m["pattern_id"] for m in data["payload"]["markers"]] == [3]

    def test_normalize_bare_list(self):
        r = client.post("/v1/api/scans/normalize", params={"scrip": "INFY"}, json=[{"time": T0}])
        data = r.json()
        assert len(data["payload"]["markers"]) == 1
        assert data["payload"]["series"] is None

    def test_bad_symbol(self):
        r = client.post("/v1/api/scans/normalize", params={"scrip": "TCS;DROP"}, json=[])
        assert r.status_code == 400
        assert "Invalid symbol" in r.json()["detail"]


# ═══════════════════════════════════════════════
#  ERRORS
# ═══════════════════════════════════════════════


class TestErrors:

    def test_not_found_shape(self):
        r = client.get("/v1/api/charts/missing", headers={"X-Request-ID": "req-404"})
        body = r.json()
        assert body["error"] is True
        assert body["status_code"] == 404
        assert "missing" in body["detail"]
        assert body["request_id"] == "req-404"

    def test_validation_error_shape(self):
        r = client.post("/v1/api/overlays", json={"price_data": [{"time": T0, "open": 1}]})
        assert r.status_code == 422
        body = r.json()
        assert body["error"] is True
        assert body["detail"] == "Validation error"
        assert any("price_data" in e["field"] for e in body["errors"])

    def test_marker_without_numeric_time(self):
        r = client.post("/v1/api/overlays", json=_body([{"time": "yesterday"}]))
        assert r.status_code == 422

    def test_internal_model_error_is_500(self, monkeypatch):
        import patternscan.routes as routes
        from patternscan.config import OverlayConfig

        class MisconfiguredOverlays:
            @staticmethod
            def from_settings():
                return OverlayConfig(blend_ratio=2.0)

        monkeypatch.setattr(routes, "OverlayConfig", MisconfiguredOverlays)
        r = client.post("/v1/api/overlays", json=_body([]))
        assert r.status_code == 500
        body = r.json()
        assert body["detail"] == "Internal server error"
        assert "blend_ratio" not in r.text


class TestRequestLogger:

    def test_chart_id_from_path(self):
        from patternscan.middleware.request_logger import _chart_id
        assert _chart_id("/v1/api/charts/tcs-daily/render") == "tcs-daily"
        assert _chart_id("/v1/api/charts/tcs-daily") == "tcs-daily"
        assert _chart_id("/v1/api/overlays") is None

    def test_generated_request_id(self):
        r = client.post("/v1/api/overlays", json=_body([]))
        assert len(r.headers["X-Request-ID"]) == 32


class TestServe:

    def test_run_starts_uvicorn_from_settings(self, monkeypatch):
        from patternscan.config import get_settings
        from patternscan.main import run
        calls = []
        monkeypatch.setattr("uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))
        run()

        settings = get_settings()
        [(target, kwargs)] = calls
        assert target == "patternscan.main:app"
        assert kwargs["host"] == settings.app_host
        assert kwargs["port"] == settings.app_port
