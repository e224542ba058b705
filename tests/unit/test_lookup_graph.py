"""
Pipeline tests for the lookup graph with fake geocoder, forecast and extractor.
Covers the two-round disambiguation protocol, current-location handling and failure codes.
"""
import asyncio
import datetime

import httpx
import pytest

from app.errors import ErrorCode, WeatherLookupError
from fakes import FakeGeocoder, FakeWeather, SpyExtractor, nominatim_result
from graph.compose import LookupResult
from graph.disambiguation import DisambiguationResponse
from graph.graph import route_after_resolve, route_entry, run_lookup
from graph.intent import Intent, IntentType
from graph.nodes import CURRENT_LOCATION_NAME, LookupServices, is_current_location_phrase
from tools.location_store import LocationStore

TODAY = datetime.date(2025, 1, 15)

COLUMBIAS = [
    nominatim_result("Columbia", "South Carolina", 34.0007, -81.0348, 501),
    nominatim_result("Columbia", "Missouri", 38.9517, -92.3341, 502),
    nominatim_result("Columbia Heights", "Minnesota", 45.0408, -93.263, 503),
    nominatim_result("Columbia City", "Indiana", 41.1573, -85.4883, 504),
    nominatim_result("Columbia Falls", "Montana", 48.3702, -114.1815, 505),
    nominatim_result("Columbia", "Maryland", 39.2037, -76.861, 506),
]

TEXAS = nominatim_result(
    "Texas", "Texas", 31.26, -98.54, 600, kind="", addresstype="state",
    importance=0.85, osm_type="relation", place_type="administrative",
)
TEXAS_CITIES = [
    nominatim_result("Houston", "Texas", 29.7604, -95.3698, 601),
    nominatim_result("Shreveport", "Louisiana", 32.5252, -93.7502, 602),
    nominatim_result("Dallas", "Texas", 32.7767, -96.797, 603),
    nominatim_result("Houston", "Texas", 29.8, -95.4, 604),
    nominatim_result("San Marcos", "Texas", 29.8833, -97.9414, 605, kind="town"),
]

AUSTIN = nominatim_result("Austin", "Texas", 30.2672, -97.7431, 700, county="Travis County")


def _intent(location=None, intent_type=IntentType.CURRENT, provided=None, **kwargs):
    return Intent(
        intent_type=intent_type,
        location_provided=bool(location) if provided is None else provided,
        location=location,
        **kwargs,
    )


def _run(services, query, **kwargs):
    kwargs.setdefault("reference_date", TODAY)
    return asyncio.run(run_lookup(services, query, **kwargs))


class TestCurrentLocationPhrase:
    @pytest.mark.parametrize("text", ["here", "My location", "current location!", "where I am", "where i'm at", "weather here?"])
    def test_matches(self, text):
        assert is_current_location_phrase(text) is True

    @pytest.mark.parametrize("text", ["Hereford", "Austin", "", None, "somewhere"])
    def test_no_match(self, text):
        assert is_current_location_phrase(text) is False


def test_routes():
    assert route_entry({"intent": None}) == "extract_intent"
    assert route_entry({"intent": _intent("Austin")}) == "resolve_location"
    assert route_after_resolve({"disambiguation": None}) == "fetch_weather"


class TestDisambiguationProtocol:
    def test_distinct_names_require_disambiguation(self, make_services):
        extractor = SpyExtractor(_intent("Columbia"))
        services = make_services(geocoder=FakeGeocoder({"Columbia": COLUMBIAS}), extractor=extractor)

        out = _run(services, "weather in Columbia")

        assert isinstance(out, DisambiguationResponse)
        body = out.to_wire()
        assert body["requiresDisambiguation"] is True
        assert body["originalQuery"] == "Columbia"
        assert 2 <= len(body["locations"]) <= 5
        indexes = [loc["index"] for loc in body["locations"]]
        assert indexes == list(range(len(indexes)))
        assert extractor.calls == ["weather in Columbia"]
        assert services.weather.calls == []

    def test_resubmission_skips_extractor_and_returns_card(self, make_services, store):
        extractor = SpyExtractor(_intent("Columbia"))
        geocoder = FakeGeocoder({"Columbia": COLUMBIAS})
        services = make_services(geocoder=geocoder, extractor=extractor)

        first = _run(services, "weather in Columbia")
        second = _run(services, "weather in Columbia", intent=first.intent, selected_index=1)

        assert extractor.calls == ["weather in Columbia"]
        assert isinstance(second, LookupResult)
        card = second.card
        assert card["type"] == "CURRENT"
        assert card["location"]["region"] == "Missouri"
        assert card["location"]["coordinates"] == {"lat": 38.9517, "lon": -92.3341}
        assert services.weather.calls == [(38.9517, -92.3341, "Columbia")]
        assert store.get_by_external_id("502").id == card["location"]["id"]

    def test_echoed_intent_round_trips_through_the_wire(self, make_services):
        services = make_services(geocoder=FakeGeocoder({"Columbia": COLUMBIAS}), extractor=SpyExtractor(None))
        body = _run(services, "Columbia", intent=_intent("Columbia")).to_wire()
        echoed = Intent.model_validate(body["intent"])

        out = _run(services, "Columbia", intent=echoed, selected_index=0)
        assert isinstance(out, LookupResult)
        assert services.extractor.calls == []

    def test_out_of_range_selection(self, make_services):
        services = make_services(geocoder=FakeGeocoder({"Columbia": COLUMBIAS}))
        with pytest.raises(WeatherLookupError) as exc:
            _run(services, "Columbia", intent=_intent("Columbia"), selected_index=7)
        assert exc.value.code == ErrorCode.INVALID_SELECTION

    def test_single_match_proceeds_without_selection(self, make_services):
        services = make_services(geocoder=FakeGeocoder({"Austin": [AUSTIN]}))
        out = _run(services, "Austin now", intent=_intent("Austin"))
        assert isinstance(out, LookupResult)
        assert out.summary_text == "Austin is currently Sunny with a temperature of 60°F."

    def test_repeated_lookups_reuse_stored_location(self, make_services):
        services = make_services(geocoder=FakeGeocoder({"Austin": [AUSTIN]}))
        a = _run(services, "Austin", intent=_intent("Austin"))
        b = _run(services, "Austin", intent=_intent("Austin", IntentType.DAY, date="2025-01-15"))
        assert a.card["location"]["id"] == b.card["location"]["id"]


class TestStateLevel:
    def test_state_query_offers_cities(self, make_services):
        geocoder = FakeGeocoder({"Texas": [TEXAS], "city in Texas": TEXAS_CITIES})
        services = make_services(geocoder=geocoder)

        out = _run(services, "weather in Texas", intent=_intent("Texas"))

        assert isinstance(out, DisambiguationResponse)
        body = out.to_wire()
        assert body["stateName"] == "Texas"
        assert [loc["name"] for loc in body["locations"]] == ["Houston", "Dallas", "San Marcos"]
        assert geocoder.search_calls[1] == ("city in Texas", 10)

    def test_state_selection_picks_from_city_list(self, make_services):
        geocoder = FakeGeocoder({"Texas": [TEXAS], "city in Texas": TEXAS_CITIES})
        services = make_services(geocoder=geocoder)

        out = _run(services, "weather in Texas", intent=_intent("Texas"), selected_index=1)

        assert isinstance(out, LookupResult)
        assert out.card["title"] == "Dallas"

    def test_no_cities_is_too_broad(self, make_services):
        services = make_services(geocoder=FakeGeocoder({"Texas": [TEXAS]}))
        with pytest.raises(WeatherLookupError) as exc:
            _run(services, "weather in Texas", intent=_intent("Texas"))
        assert exc.value.code == ErrorCode.LOCATION_TOO_BROAD


class TestCurrentLocation:
    def test_no_location_and_no_coordinates(self, make_services):
        with pytest.raises(WeatherLookupError) as exc:
            _run(make_services(), "is it raining", intent=_intent())
        assert exc.value.code == ErrorCode.CURRENT_LOCATION_REQUIRED
        assert exc.value.status_code == 400

    def test_phrase_uses_device_coordinates(self, make_services):
        geocoder = FakeGeocoder(reverse_result=AUSTIN)
        services = make_services(geocoder=geocoder)

        out = _run(services, "weather at my location", intent=_intent("my location"), current_location=(30.27, -97.74))

        assert geocoder.search_calls == []
        assert geocoder.reverse_calls == [(30.27, -97.74)]
        assert out.card["title"] == "Austin"
        assert out.card["location"]["coordinates"] == {"lat": 30.27, "lon": -97.74}
        assert out.card["location"]["id"] is not None

    def test_reverse_failure_uses_placeholder_name(self, make_services):
        geocoder = FakeGeocoder(reverse_error=httpx.ConnectError("down"))
        services = make_services(geocoder=geocoder)

        out = _run(services, "is it raining", intent=_intent(), current_location=(30.27, -97.74))

        assert out.card["title"] == CURRENT_LOCATION_NAME
        assert out.card["location"]["id"] is None


class TestFailures:
    def test_location_not_found(self, make_services):
        with pytest.raises(WeatherLookupError) as exc:
            _run(make_services(), "weather in Atlantis", intent=_intent("Atlantis"))
        assert exc.value.code == ErrorCode.LOCATION_NOT_FOUND
        assert exc.value.status_code == 404

    def test_blank_location(self, make_services):
        with pytest.raises(WeatherLookupError) as exc:
            _run(make_services(), "weather", intent=_intent("   ", provided=True))
        assert exc.value.code == ErrorCode.LOCATION_REQUIRED

    def test_extraction_without_extractor(self, make_services):
        with pytest.raises(WeatherLookupError) as exc:
            _run(make_services(), "weather in Austin")
        assert exc.value.code == ErrorCode.CONFIGURATION_ERROR

    def test_weather_outside_coverage(self, make_services):
        weather = FakeWeather(error=WeatherLookupError(ErrorCode.LOCATION_NOT_SUPPORTED, "outside NWS coverage"))
        services = make_services(geocoder=FakeGeocoder({"Austin": [AUSTIN]}), weather=weather)
        with pytest.raises(WeatherLookupError) as exc:
            _run(services, "Austin", intent=_intent("Austin"))
        assert exc.value.code == ErrorCode.LOCATION_NOT_SUPPORTED


def test_metric_units_flow_to_card(make_services):
    services = make_services(geocoder=FakeGeocoder({"Austin": [AUSTIN]}))
    out = _run(services, "Austin", intent=_intent("Austin"), units="metric")
    assert out.card["units"] == "metric"
    assert out.summary_text.endswith("16°C.")


def test_lookup_with_in_memory_store():
    store = LocationStore.from_url("sqlite:///:memory:")
    store.create_schema()
    services = LookupServices(geocoder=FakeGeocoder({"Austin": [AUSTIN]}), weather=FakeWeather(), store=store)

    out = _run(services, "Austin", intent=_intent("Austin"))

    assert isinstance(out, LookupResult)
    assert store.get_by_external_id("700").id == out.card["location"]["id"]
