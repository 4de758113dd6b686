import pytest

from helpers import load_fixture


@pytest.fixture
def raw_locations():
    return load_fixture("access_locations.json")
