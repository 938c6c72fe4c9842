"""
Shared fixtures for the Bus Tracker tests
"""

import os

import pytest

# Keep module import of bustracker.main away from AWS
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("AWS_REGION", "us-east-1")

from fastapi.testclient import TestClient

from bustracker.config import Settings
from bustracker.ingestion import LocationIngestionService
from bustracker.main import create_app
from bustracker.memory_store import InMemoryStore
from bustracker.query import LocationQueryService
from bustracker.registry import BusRegistry


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def registry(store):
    return BusRegistry(store)


@pytest.fixture
def ingestion(store):
    return LocationIngestionService(store)


@pytest.fixture
def query(store):
    return LocationQueryService(store)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = {"STORE_BACKEND": "memory", "LOG_LEVEL": "WARNING"}
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def client(store, make_settings):
    app = create_app(store=store, app_settings=make_settings())
    with TestClient(app) as test_client:
        yield test_client
