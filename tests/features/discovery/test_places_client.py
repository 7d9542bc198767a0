from unittest.mock import MagicMock

import httpx
import pytest

from localinsights.features.discovery.schemas.grid_search import Coordinates
from localinsights.features.discovery.services.places_client import PlacesClient
from localinsights.platform.exceptions import NetworkError, ValidationError

CENTER = Coordinates(lat=44.65, lng=-63.57)


def api_response(data):
    response = MagicMock()
    response.json.return_value = data
    return response


def make_client(responses, api_keys=("key-1",), max_pages=3):
    http = MagicMock()
    http.get.side_effect = responses
    sleep = MagicMock()
    client = PlacesClient(list(api_keys), timeout=5.0, max_pages=max_pages, page_token_delay=2.0, http_client=http, sleep=sleep)
    return client, http, sleep


class TestSearchNearby:
    def test_single_page(self):
        client, http, sleep = make_client([api_response({"status": "OK", "results": [{"place_id": "a"}]})])

        places = client.search_nearby(CENTER, 1000, "bakery")

        assert places == [{"place_id": "a"}]
        sleep.assert_not_called()
        url = http.get.call_args.args[0]
        params = http.get.call_args.kwargs["params"]
        assert url == "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
        assert params == {"location": "44.65,-63.57", "radius": 1000, "type": "bakery", "key": "key-1"}

    def test_follows_page_tokens_with_delay(self):
        client, http, sleep = make_client([
            api_response({"status": "OK", "results": [{"place_id": "a"}], "next_page_token": "t1"}),
            api_response({"status": "OK", "results": [{"place_id": "b"}], "next_page_token": "t2"}),
            api_response({"status": "OK", "results": [{"place_id": "c"}]}),
        ])

        places = client.search_nearby(CENTER, 1000)

        assert [place["place_id"] for place in places] == ["a", "b", "c"]
        assert sleep.call_count == 2
        sleep.assert_called_with(2.0)
        assert http.get.call_args_list[1].kwargs["params"] == {"pagetoken": "t1", "key": "key-1"}

    def test_stops_at_max_pages(self):
        client, http, _ = make_client(
            [api_response({"status": "OK", "results": [{"place_id": "a"}], "next_page_token": "t"})] * 2,
            max_pages=2,
        )

        places = client.search_nearby(CENTER, 1000)

        assert len(places) == 2
        assert http.get.call_count == 2

    def test_zero_results(self):
        client, _, _ = make_client([api_response({"status": "ZERO_RESULTS", "results": []})])
        assert client.search_nearby(CENTER, 1000) == []

    def test_rotates_key_over_query_limit(self):
        client, http, _ = make_client(
            [
                api_response({"status": "OVER_QUERY_LIMIT"}),
                api_response({"status": "OK", "results": [{"place_id": "a"}]}),
            ],
            api_keys=("key-1", "key-2"),
        )

        places = client.search_nearby(CENTER, 1000)

        assert places == [{"place_id": "a"}]
        assert [c.kwargs["params"]["key"] for c in http.get.call_args_list] == ["key-1", "key-2"]

    def test_all_keys_exhausted(self):
        client, _, _ = make_client(
            [api_response({"status": "OVER_QUERY_LIMIT"})] * 2,
            api_keys=("key-1", "key-2"),
        )

        with pytest.raises(NetworkError, match="OVER_QUERY_LIMIT on all 2 keys"):
            client.search_nearby(CENTER, 1000)

    def test_request_denied(self):
        client, _, _ = make_client([api_response({"status": "REQUEST_DENIED", "error_message": "bad key"})])

        with pytest.raises(NetworkError, match="REQUEST_DENIED error=bad key"):
            client.search_nearby(CENTER, 1000)

    def test_timeout(self):
        client, _, _ = make_client(httpx.ReadTimeout("timed out"))

        with pytest.raises(NetworkError, match="timed out"):
            client.search_nearby(CENTER, 1000)

    def test_http_error(self):
        response = MagicMock()
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "server error", request=MagicMock(), response=MagicMock(status_code=502)
        )
        client, _, _ = make_client([response])

        with pytest.raises(NetworkError, match="HTTP error 502"):
            client.search_nearby(CENTER, 1000)

    def test_invalid_json(self):
        response = MagicMock()
        response.json.side_effect = ValueError("Expecting value")
        client, _, _ = make_client([response])

        with pytest.raises(NetworkError, match="invalid JSON"):
            client.search_nearby(CENTER, 1000)

    def test_missing_keys(self):
        client, http, _ = make_client([], api_keys=())

        with pytest.raises(ValidationError):
            client.search_nearby(CENTER, 1000)
        http.get.assert_not_called()


def test_place_details():
    client, http, _ = make_client([api_response({"status": "OK", "result": {"name": "Harbour Bakery"}})])

    details = client.get_place_details("ChIJ123", fields=["name", "website"])

    assert details == {"name": "Harbour Bakery"}
    assert http.get.call_args.kwargs["params"] == {"place_id": "ChIJ123", "fields": "name,website", "key": "key-1"}
