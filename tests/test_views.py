from __future__ import annotations

import pytest
import requests
from rest_framework.test import APIClient

from countries import persistence

from .conftest import RATES_PAYLOAD

pytestmark = pytest.mark.django_db


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def refreshed(api_client, upstream):
    response = api_client.post("/countries/refresh")
    assert response.status_code == 200
    return response


def test_refresh_returns_summary(refreshed) -> None:
    body = refreshed.json()

    assert body["message"] == "Refresh successful"
    assert body["total"] == 5
    assert body["last_refreshed_at"]
    assert "duration_seconds" in body
    # failures are only logged, never listed
    assert "errors" not in body


def test_refresh_source_down_is_503(api_client, upstream, settings) -> None:
    upstream.set(settings.COUNTRIES_API_URL, requests.ConnectionError("down"))

    response = api_client.post("/countries/refresh")

    assert response.status_code == 503
    assert response.json() == {
        "error": "External data source unavailable",
        "details": "Could not fetch data from Countries API",
    }


def test_refresh_rejects_get(api_client) -> None:
    assert api_client.get("/countries/refresh").status_code == 405


def test_list_countries_with_filters(api_client, refreshed) -> None:
    response = api_client.get("/countries", {"region": "africa"})

    assert response.status_code == 200
    names = [row["name"] for row in response.json()]
    assert names == ["Nigeria", "Ghana", "Wakanda"]
    assert all(row["region"] == "Africa" for row in response.json())

    response = api_client.get("/countries/", {"currency": "eur"})
    assert [row["name"] for row in response.json()] == ["Germany"]


def test_list_sorted_by_gdp_desc_puts_nulls_last(api_client, refreshed) -> None:
    rows = api_client.get("/countries", {"sort": "gdp_desc"}).json()

    gdps = [row["estimated_gdp"] for row in rows]
    known = [g for g in gdps if g is not None]
    assert known == sorted(known, reverse=True)
    assert gdps[len(known):] == [None] * (len(gdps) - len(known))


def test_list_empty_match_is_empty_list(api_client, refreshed) -> None:
    response = api_client.get("/countries", {"region": "Oceania"})
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.parametrize(
    "params,field",
    [({"continent": "Africa"}, "continent"), ({"region": ""}, "region"), ({"sort": "population_up"}, "sort")],
)
def test_list_rejects_bad_query(api_client, params, field) -> None:
    response = api_client.get("/countries", params)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert field in body["details"]


def test_get_country_by_name(api_client, refreshed) -> None:
    response = api_client.get("/countries/nigeria")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Nigeria"
    assert set(body) == {
        "id", "name", "capital", "region", "population", "currency_code",
        "exchange_rate", "estimated_gdp", "flag_url", "last_refreshed_at",
    }


def test_get_unknown_country_is_404(api_client) -> None:
    response = api_client.get("/countries/Wakanda")
    assert response.status_code == 404
    assert response.json() == {"error": "Country not found"}


def test_delete_country_returns_row(api_client, refreshed) -> None:
    response = api_client.delete("/countries/GHANA")

    assert response.status_code == 200
    assert response.json()["name"] == "Ghana"
    assert api_client.get("/countries/ghana").status_code == 404
    assert api_client.delete("/countries/ghana").status_code == 404


def test_status(api_client, refreshed) -> None:
    body = api_client.get("/status").json()

    assert body["totalCountries"] == 5
    assert body["lastRefreshedAt"] == refreshed.json()["last_refreshed_at"]


def test_status_empty_store(api_client) -> None:
    assert api_client.get("/status").json() == {"totalCountries": 0, "lastRefreshedAt": None}


def test_summary_image_missing_is_404(api_client) -> None:
    response = api_client.get("/countries/image")
    assert response.status_code == 404
    assert response.json() == {"error": "Summary image not found"}


def test_summary_image_served_after_refresh(api_client, refreshed) -> None:
    response = api_client.get("/countries/image")

    assert response.status_code == 200
    assert response["Content-Type"] == "image/png"
    content = b"".join(response.streaming_content)
    response.close()
    assert content.startswith(b"\x89PNG\r\n\x1a\n")


def test_unexpected_error_is_generic_500(api_client, monkeypatch) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError("connection pool exhausted")

    monkeypatch.setattr(persistence, "refresh_status", explode)

    response = api_client.get("/status")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_unknown_route_is_json_404(api_client, settings) -> None:
    settings.DEBUG = False
    response = api_client.get("/nope")

    assert response.status_code == 404
    assert response.json()["error"].startswith("Endpoint not found")


def test_list_survives_non_finite_upstream_rate(api_client, upstream, settings) -> None:
    upstream.set(settings.EXCHANGE_RATES_API_URL, dict(RATES_PAYLOAD, rates=dict(RATES_PAYLOAD["rates"], EUR=float("inf"))))
    assert api_client.post("/countries/refresh").status_code == 200

    response = api_client.get("/countries", {"currency": "EUR"})

    assert response.status_code == 200
    assert response.json()[0]["exchange_rate"] is None
