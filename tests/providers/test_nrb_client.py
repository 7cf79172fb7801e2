"""Tests for the NRB client wrapper."""

from __future__ import annotations

import pytest
import responses
from responses import matchers

from dailyfx.providers.nrb_client import NrbAPIError, NrbClient, NrbClientConfig
from tests.fixtures import load_json

pytestmark = pytest.mark.providers

BASE_URL = "https://www.nrb.org.np/api/forex/v1"


@pytest.fixture()
def client() -> NrbClient:
    return NrbClient(NrbClientConfig(base_url=BASE_URL, timeout=2))


@responses.activate
def test_client_returns_payload(client: NrbClient) -> None:
    params = {"from": "2024-06-01", "to": "2024-06-03", "page": "1", "per_page": "100"}
    responses.add(
        responses.GET,
        f"{BASE_URL}/rates",
        json=load_json("nrb_rates_2024_06.json"),
        match=[matchers.query_param_matcher(params)],
        status=200,
    )

    data = client.get("/rates", params=params)

    assert data["data"]["payload"][0]["date"] == "2024-06-01"


@responses.activate
def test_client_flags_not_found(client: NrbClient) -> None:
    responses.add(responses.GET, f"{BASE_URL}/rates", status=404, json={"message": "Not found"})

    with pytest.raises(NrbAPIError) as exc_info:
        client.get("/rates")

    assert exc_info.value.not_found


@responses.activate
def test_client_raises_on_server_error(client: NrbClient) -> None:
    responses.add(responses.GET, f"{BASE_URL}/rates", status=500)

    with pytest.raises(NrbAPIError) as exc_info:
        client.get("/rates")

    assert exc_info.value.status_code == 500
    assert not exc_info.value.not_found


@responses.activate
def test_client_validates_payload_shape(client: NrbClient) -> None:
    responses.add(responses.GET, f"{BASE_URL}/rates", json={"data": {"rows": []}}, status=200)

    with pytest.raises(NrbAPIError) as exc_info:
        client.get("/rates")

    assert "missing 'data.payload'" in str(exc_info.value)
