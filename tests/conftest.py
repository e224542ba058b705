"""Pytest config: PYTHONPATH, env, and fixtures for the lookup pipeline."""
import os
import sys
from pathlib import Path

import pytest

root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(root))
sys.path.insert(0, str(root / "tests"))
os.environ.setdefault("OPENAI_API_KEY", "sk-test-dummy")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from graph.nodes import LookupServices  # noqa: E402
from fakes import FakeGeocoder, FakeWeather  # noqa: E402
from tools.location_store import LocationStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    s = LocationStore.from_url(f"sqlite:///{tmp_path / 'locations.db'}")
    s.create_schema()
    return s


@pytest.fixture
def make_services(store):
    def _make(geocoder=None, weather=None, extractor=None, **kwargs):
        return LookupServices(
            geocoder=geocoder or FakeGeocoder(),
            weather=weather or FakeWeather(),
            store=store,
            extractor=extractor,
            **kwargs,
        )
    return _make
