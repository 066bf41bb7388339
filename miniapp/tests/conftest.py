"""
Test configuration
Shared fixtures: sample snapshot, in-memory cache, endpoint app and stores
"""

import copy

import httpx
import pytest
from fastapi.testclient import TestClient

from miniapp.app import create_app
from miniapp.config.settings import Settings
from miniapp.core.database import SnapshotCache
from miniapp.models.catalog import Snapshot
from miniapp.services.cart_service import CartService
from miniapp.services.config_repository import ConfigRepository
from miniapp.services.config_store import ConfigStore
from miniapp.services.remote_config import RemoteConfigClient

REMOTE_URL = "http://testserver/api/v1/config"

SAMPLE_SNAPSHOT = {
    "restaurant": {"name": "Chez Test", "description": "Pizzas et boissons"},
    "categories": {
        "pizzas": {"name": "Pizzas", "emoji": "🍕", "description": "Au feu de bois"},
        "boissons": {"name": "Boissons", "emoji": "🥤", "description": ""},
    },
    "products": {
        "pizzas": [
            {
                "id": 1,
                "name": "Margherita",
                "description": "Tomate, mozzarella",
                "price": 10,
                "emoji": "🍕",
                "image": "",
                "category": "pizzas",
                "isNew": False,
                "isPromo": False,
                "customPrices": {"5": {"delivery": 45, "pickup": 40}},
            },
            {
                "id": 2,
                "name": "Regina",
                "description": "Jambon, champignons",
                "price": 12.5,
                "emoji": "🍕",
                "image": "https://example.com/regina.jpg",
                "category": "pizzas",
                "isNew": True,
                "isPromo": False,
                "customPrices": {"2.5": 30, "10": {"delivery": 110, "pickup": 100}},
            },
        ],
        "boissons": [
            {
                "id": 3,
                "name": "Limonade",
                "description": "",
                "price": 3,
                "emoji": "🍋",
                "image": "",
                "video": "https://example.com/limonade.mp4",
                "category": "boissons",
                "isNew": False,
                "isPromo": True,
            },
        ],
    },
    "admin": {
        "telegram_username": "chez_test",
        "channel_link": "https://t.me/chez_test_channel",
        "whitelist": ["owner", "Manager"],
    },
}


def _offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def sample_config():
    """Fresh wire copy of the sample snapshot"""
    return copy.deepcopy(SAMPLE_SNAPSHOT)


@pytest.fixture
def sample_snapshot(sample_config):
    return Snapshot.from_wire(sample_config)


@pytest.fixture
def test_settings(tmp_path):
    """Test settings, everything under tmp_path or in memory"""
    return Settings(
        config_file_path=str(tmp_path / "data" / "config.json"),
        cache_database_url="duckdb://:memory:",
        remote_config_url=REMOTE_URL,
        log_level="DEBUG",
        _env_file=None,
    )


@pytest.fixture
def cache():
    """In-memory DuckDB cache"""
    cache = SnapshotCache(":memory:")
    yield cache
    cache.close()


@pytest.fixture
def repository(test_settings):
    return ConfigRepository(settings=test_settings)


@pytest.fixture
def app_instance(test_settings, repository):
    return create_app(settings=test_settings, repository=repository)


@pytest.fixture
def client(app_instance):
    return TestClient(app_instance)


@pytest.fixture
def stored_config(repository, sample_snapshot):
    """Endpoint storage holding the sample snapshot"""
    repository.write(sample_snapshot)
    return sample_snapshot


@pytest.fixture
def remote(app_instance, test_settings):
    """Client talking to the real endpoint in-process"""
    return RemoteConfigClient(
        url=REMOTE_URL,
        transport=httpx.ASGITransport(app=app_instance),
        settings=test_settings,
    )


@pytest.fixture
def offline_remote(test_settings):
    """Client whose every request fails to connect"""
    return RemoteConfigClient(
        url=REMOTE_URL,
        transport=httpx.MockTransport(_offline),
        settings=test_settings,
    )


@pytest.fixture
def store(cache, remote):
    return ConfigStore(cache, remote)


@pytest.fixture
def loaded_store(cache, sample_snapshot):
    """Store holding the sample snapshot, no remote endpoint"""
    store = ConfigStore(cache)
    store.replace(sample_snapshot)
    return store


@pytest.fixture
def cart(loaded_store, test_settings):
    return CartService(loaded_store, settings=test_settings)
