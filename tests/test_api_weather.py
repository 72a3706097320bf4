"""
Endpoint tests for /api/weather.
"""

from datetime import timedelta


class TestWeatherEndpoint:
    def test_default_location(self, client, openmeteo, parse_script):
        r = client.get("/api/weather")
        assert r.status_code == 200
        assert r.headers["cache-control"] == "s-maxage=900"

        data = parse_script(r.text, "weather")
        assert data["location"] == {
            "label": "Default",
            "lat": 41.8781,
            "lon": -87.6298,
            "timezone": "America/Chicago",
            "city": None,
        }
        assert data["current"]["temperature_2m"] == 61.3
        assert data["hourly"] is None
        assert openmeteo.forecast_calls == [(41.8781, -87.6298, "America/Chicago")]

    def test_explicit_coordinates_win_over_city(self, client, openmeteo, parse_script):
        r = client.get("/api/weather", params={"lat": "40.7128", "lon": "-74.006", "tz": "America/New_York", "city": "Denver"})
        data = parse_script(r.text, "weather")
        assert data["location"]["label"] == "(40.7128, -74.0060)"
        assert data["location"]["timezone"] == "America/New_York"
        assert openmeteo.geocode_calls == []

    def test_city_is_geocoded(self, client, openmeteo, parse_script):
        data = parse_script(client.get("/api/weather", params={"city": "Denver"}).text, "weather")
        assert data["location"]["label"] == "Denver, Colorado, United States"
        assert data["location"]["timezone"] == "America/Denver"
        assert data["location"]["city"] == "Denver"
        assert openmeteo.forecast_calls == [(39.7392, -104.9903, "America/Denver")]

    def test_unknown_city_is_a_client_error(self, client, kv):
        r = client.get("/api/weather", params={"city": "Xqzzy"})
        assert r.status_code == 400
        assert r.text == "// Error: City not found: Xqzzy"
        assert len(kv) == 0

    def test_cache_hit_skips_geocoding_and_forecast(self, client, openmeteo, clock):
        client.get("/api/weather", params={"city": "Denver"})
        clock.now += timedelta(minutes=14)
        client.get("/api/weather", params={"city": "  DENVER "})
        assert len(openmeteo.geocode_calls) == 1
        assert len(openmeteo.forecast_calls) == 1

    def test_refreshes_after_fifteen_minutes(self, client, openmeteo, clock):
        client.get("/api/weather")
        clock.now += timedelta(minutes=15)
        client.get("/api/weather")
        assert len(openmeteo.forecast_calls) == 2

    def test_locations_are_cached_separately(self, client, openmeteo):
        client.get("/api/weather")
        client.get("/api/weather", params={"city": "Denver"})
        assert len(openmeteo.forecast_calls) == 2
