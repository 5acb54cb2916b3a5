"""Tests for geocoding.py - reverse geocoding with a fallback label."""

import asyncio

import httpx
import pytest

from spotmap.geocoding import area_from_address, reverse_geocode


def geocode(handler, config, lat=23.8103, lng=90.4125):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await reverse_geocode(lat, lng, config, client)

    return asyncio.run(go())


class TestAreaFromAddress:
    @pytest.mark.parametrize(
        "address, expected",
        [
            ({"suburb": "Dhanmondi", "city": "Dhaka"}, "Dhanmondi"),
            ({"city": "Dhaka"}, "Dhaka"),
            ({"town": "Savar", "country": "Bangladesh"}, "Savar"),
            ({"country": "Bangladesh"}, None),
            ({"suburb": "", "city": "Dhaka"}, "Dhaka"),
        ],
    )
    def test_most_specific_wins(self, address, expected):
        assert area_from_address({"address": address}) == expected

    def test_no_address(self):
        assert area_from_address({"error": "Unable to geocode"}) is None


class TestReverseGeocode:
    def test_success(self, config):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"address": {"suburb": "Motijheel", "city": "Dhaka"}})

        assert geocode(handler, config) == "Motijheel"
        assert seen["params"]["lat"] == "23.8103"
        assert seen["params"]["lon"] == "90.4125"
        assert seen["params"]["format"] == "json"

    def test_unlabelled_location_falls_back(self, config):
        label = geocode(lambda request: httpx.Response(200, json={"address": {}}), config)
        assert label == config.fallback_area_label

    def test_http_error_falls_back(self, config):
        label = geocode(lambda request: httpx.Response(500), config)
        assert label == "Dhaka"

    def test_bad_json_falls_back(self, config):
        label = geocode(lambda request: httpx.Response(200, text="not json"), config)
        assert label == "Dhaka"

    def test_non_object_json_falls_back(self, config):
        label = geocode(lambda request: httpx.Response(200, json=["unexpected"]), config)
        assert label == "Dhaka"

    def test_timeout_falls_back(self, config):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        assert geocode(handler, config) == "Dhaka"

    def test_custom_fallback(self, config):
        config = config.model_copy(update={"fallback_area_label": "Chattogram"})
        assert geocode(lambda request: httpx.Response(503), config) == "Chattogram"
