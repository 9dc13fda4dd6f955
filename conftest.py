import pytest

from app import create_app
from models import Client
from venue_manager import VenueManager


@pytest.fixture
def venue():
    """A freshly seeded venue per test so state never leaks between cases."""
    return VenueManager()


@pytest.fixture
def http(venue):
    flask_app = create_app(venue)
    flask_app.config.update(TESTING=True)
    return flask_app.test_client()


@pytest.fixture
def alice():
    return Client("Alice", "alice@example.com", "555-0100")


@pytest.fixture
def bob():
    return Client("Bob", "bob@example.com", "555-0101")


@pytest.fixture
def carol():
    return Client("Carol", "carol@example.com", "555-0102")
