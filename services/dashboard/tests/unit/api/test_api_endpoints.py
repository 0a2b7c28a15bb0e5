import asyncio
from datetime import date, timedelta

import pytest
from conftest import DummyFetcher, date_span, make_snapshot
from fastapi.testclient import TestClient
from src.core.config import settings
from src.core.errors import FetchError
from src.main import app
from src.services.metrics_cache import MetricsCacheRegistry

PARAMS = {
    "email": "backoffice@example.com",
    "famille": "FTTH",
    "startDate": "2024-01-01",
    "endDate": "2024-01-12",
}


@pytest.fixture
def fetcher():
    return DummyFetcher()


@pytest.fixture
def client(fetcher, monkeypatch):
    # No lifespan: wire minimal state directly, without background refresh
    monkeypatch.setattr(settings, "api_token", None)
    app.state.registry = MetricsCacheRegistry(fetcher, max_queries=8)
    app.state.ready_event = asyncio.Event()
    app.state.ready_event.set()
    return TestClient(app, headers={"Authorization": "Bearer abc"})


@pytest.fixture
def anonymous(client):
    return TestClient(app)


def test_first_request_waits_for_initial_load(client, fetcher):
    fetcher.responses.append(
        [make_snapshot(d) for d in date_span(date(2024, 1, 1), 12)]
    )
    resp = client.get("/dashboard/metrics", params=PARAMS)
    assert resp.status_code == 200
    body = resp.json()
    assert [p["calculationDate"] for p in body["data"]] == [
        str(d) for d in date_span(date(2024, 1, 3), 10)
    ]
    assert body["error"] is None
    assert body["isFetching"] is False
    assert body["query"]["startDate"] == "2024-01-01"
    assert len(fetcher.calls) == 1


def test_later_requests_serve_cached_window(client, fetcher):
    fetcher.responses.append([make_snapshot("2024-01-01")])
    client.get("/dashboard/metrics", params=PARAMS)
    resp = client.get("/dashboard/metrics", params=PARAMS)
    assert len(resp.json()["data"]) == 1
    assert len(fetcher.calls) == 1


def test_refresh_merges_new_points(client, fetcher):
    fetcher.responses.extend(
        [[make_snapshot("2024-01-01")], [make_snapshot("2024-01-01"), make_snapshot("2024-01-02")]]
    )
    client.get("/dashboard/metrics", params=PARAMS)
    resp = client.post("/dashboard/metrics/refresh", params=PARAMS)
    assert resp.status_code == 200
    assert [p["calculationDate"] for p in resp.json()["data"]] == ["2024-01-01", "2024-01-02"]


def test_fetch_error_is_reported_in_body_not_raised(client, fetcher):
    fetcher.responses.extend(
        [[make_snapshot("2024-01-01")], FetchError("Failed to fetch dashboard metrics: HTTP 500", 500)]
    )
    client.get("/dashboard/metrics", params=PARAMS)
    resp = client.post("/dashboard/metrics/refresh", params=PARAMS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["isError"] is True
    assert "HTTP 500" in body["error"]
    assert body["failureCount"] == 1
    assert len(body["data"]) == 1


def test_default_range_when_dates_omitted(client, fetcher):
    resp = client.get(
        "/dashboard/metrics", params={"email": "a@b.c", "famille": "FTTH"}
    )
    assert resp.status_code == 200
    query = fetcher.calls[0]
    assert query.end_date == date.today()
    assert query.start_date == date.today() - timedelta(days=9)


def test_bearer_token_is_forwarded(client, fetcher):
    client.get(
        "/dashboard/metrics", params=PARAMS, headers={"Authorization": "Bearer abc"}
    )
    assert fetcher.tokens == ["abc"]


def test_missing_token_is_rejected_without_service_token(anonymous, fetcher):
    resp = anonymous.get("/dashboard/metrics", params=PARAMS)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"
    assert fetcher.calls == []


def test_window_is_not_shared_across_credentials(client, anonymous, fetcher):
    fetcher.responses.extend(
        [
            [make_snapshot(d) for d in date_span(date(2024, 1, 1), 3)],
            [make_snapshot("2024-01-05")],
        ]
    )
    owner = client.get("/dashboard/metrics", params=PARAMS)
    assert len(owner.json()["data"]) == 3

    assert anonymous.get("/dashboard/metrics", params=PARAMS).status_code == 401
    assert anonymous.get("/dashboard/metrics/chart", params=PARAMS).status_code == 401

    other = anonymous.get(
        "/dashboard/metrics", params=PARAMS, headers={"Authorization": "Bearer other"}
    )
    assert [p["calculationDate"] for p in other.json()["data"]] == ["2024-01-05"]
    assert fetcher.tokens == ["abc", "other"]

    again = client.get("/dashboard/metrics", params=PARAMS)
    assert len(again.json()["data"]) == 3
    assert len(fetcher.calls) == 2


def test_service_token_is_used_when_caller_sends_none(anonymous, fetcher, monkeypatch):
    monkeypatch.setattr(settings, "api_token", "service-token")
    resp = anonymous.get("/dashboard/metrics", params=PARAMS)
    assert resp.status_code == 200
    assert fetcher.tokens == ["service-token"]


@pytest.mark.parametrize(
    "params",
    [
        {"famille": "FTTH"},
        {"email": "a@b.c"},
        {"email": "", "famille": "FTTH"},
        {**PARAMS, "startDate": "not-a-date"},
    ],
)
def test_invalid_query_is_rejected(client, params):
    assert client.get("/dashboard/metrics", params=params).status_code == 422


def test_chart_series(client, fetcher):
    fetcher.responses.append(
        [make_snapshot("2024-01-01", montantTotalBc=10), make_snapshot("2024-01-02", montantTotalBc=20)]
    )
    resp = client.get(
        "/dashboard/metrics/chart",
        params={**PARAMS, "visible": "montantTotalBc,tauxRealisation"},
    )
    assert resp.status_code == 200
    series = resp.json()
    assert [s["key"] for s in series] == ["montantTotalBc", "tauxRealisation"]
    assert [p["y"] for p in series[0]["points"]] == [10.0, 20.0]
    assert [p["y"] for p in series[1]["points"]] == [None, None]


def test_table_viewport(client):
    records = [
        {"prestation": {"code": f"P-{i}", "qteBc": 100}, "qteEncours": 20, "qteRealise": 30}
        for i in range(1000)
    ]
    resp = client.post(
        "/table/viewport",
        json={
            "records": records,
            "columns": [
                {"key": "prestation.code", "label": "Code"},
                {"key": "Reliquat", "label": "Reliquat", "kind": "qty"},
            ],
            "scrollTop": 5000,
            "containerHeight": 400,
            "rowHeight": 50,
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["startIndex"] == 95
    assert body["endIndex"] == 113
    assert body["totalHeight"] == 50_000
    first = body["rows"][0]
    assert first["offsetTop"] == 4750
    assert [c["value"] for c in first["cells"]] == ["P-95", "50.00"]


def test_health_ready(client):
    assert client.get("/healthz").status_code == 200
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json()["tracked_queries"] == 0


def test_readyz_not_ready(client):
    app.state.ready_event.clear()
    try:
        assert client.get("/readyz").status_code == 503
    finally:
        app.state.ready_event.set()


def test_prometheus_exposition(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "dashboard_upstream_fetch_total" in resp.text


def test_table_viewport_with_oversized_quantity(client):
    resp = client.post(
        "/table/viewport",
        content='{"records": [{"qteBc": 1' + "0" * 400 + '}], '
        '"columns": [{"key": "Reliquat", "label": "Reliquat"}], "scrollTop": 0}',
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 200
    assert resp.json()["rows"][0]["cells"][0]["value"] == "-"
