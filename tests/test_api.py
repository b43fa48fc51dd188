"""Tests for the FastAPI application endpoints.

This module contains integration tests for the StoreRec API endpoints,
including health checks, recommendation endpoints, interaction tracking
and error responses.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from conftest import make_interactions, make_products, make_repository
from storerec.api.main import app
from storerec.api.metrics import metrics_service
from storerec.api.routes import recommend
from storerec.recommender.utils import utcnow

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)

# Create test client
client = TestClient(app)


@pytest.fixture(autouse=True)
def clean_state():
    """Start every test with no loaded store and empty metrics."""
    recommend.reset_service_cache()
    metrics_service.reset()
    yield
    recommend.reset_service_cache()
    metrics_service.reset()


@pytest.fixture
def loaded_store():
    """Install a repository whose timestamps are relative to the real clock."""
    repository = make_repository(now=utcnow())
    recommend.install_repository(repository)
    return repository


def test_ping_endpoint():
    """Test that the /ping endpoint returns correct status and JSON."""
    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "X-Request-ID" in response.headers


def test_status_endpoint_before_load():
    response = client.get("/status")

    assert response.status_code == 200
    data = response.json()
    assert data["store_loaded"] is False
    assert data["timestamp_last_loaded"] is None


def test_status_endpoint_after_load(loaded_store):
    response = client.get("/status")

    data = response.json()
    assert data["store_loaded"] is True
    assert data["num_users"] == 4
    assert data["num_products"] == 10
    assert data["num_interactions"] == 11
    assert isinstance(data["timestamp_last_loaded"], str)


def test_for_you_personalized(loaded_store):
    response = client.get("/recommend/for-you?user_id=U1&limit=5")

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == "U1"
    assert data["strategy"] == "personalized"

    product_ids = [item["product_id"] for item in data["recommendations"]]
    assert len(product_ids) <= 5
    assert "P1" not in product_ids and "P2" not in product_ids
    assert data["recommendations"][0] == {"product_id": "P3", "score": 2.6}


def test_for_you_with_exclusions(loaded_store):
    response = client.get("/recommend/for-you?user_id=U1&exclude=P3&exclude=P5")

    product_ids = [item["product_id"] for item in response.json()["recommendations"]]
    assert "P3" not in product_ids
    assert "P5" not in product_ids


def test_for_you_anonymous(loaded_store):
    response = client.get("/recommend/for-you?limit=3")

    assert response.status_code == 200
    data = response.json()
    assert data["strategy"] == "anonymous_trending"
    assert len(data["recommendations"]) == 3
    scores = [item["score"] for item in data["recommendations"]]
    assert scores == sorted(scores, reverse=True)


def test_similar_products(loaded_store):
    response = client.get("/recommend/similar/P1?limit=4")

    assert response.status_code == 200
    data = response.json()
    assert data["product_id"] == "P1"
    product_ids = [item["product_id"] for item in data["recommendations"]]
    assert 0 < len(product_ids) <= 4
    assert "P1" not in product_ids


def test_trending_windows(loaded_store):
    daily = client.get("/recommend/trending?window=24h&limit=50").json()
    weekly = client.get("/recommend/trending?limit=50").json()

    assert daily["strategy"] == "trending"
    # U3's interactions are older than a day
    assert "P5" not in [item["product_id"] for item in daily["recommendations"]]
    assert "P5" in [item["product_id"] for item in weekly["recommendations"]]


@pytest.mark.parametrize(
    "url",
    [
        "/recommend/for-you?limit=0",
        "/recommend/for-you?limit=51",
        "/recommend/for-you?limit=ten",
        "/recommend/similar/P1?limit=21",
        "/recommend/trending?window=30d",
    ],
)
def test_invalid_query_parameters(loaded_store, url):
    response = client.get(url)

    assert response.status_code == 422
    assert "detail" in response.json()


def test_track_interaction(loaded_store):
    response = client.post(
        "/interactions",
        json={"user_id": "U9", "product_id": "P4", "interaction_type": "cart", "weight": 2},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["user_id"] == "U9"
    assert data["interaction_type"] == "cart"
    assert loaded_store.stats()["num_interactions"] == 12


def test_track_interaction_anonymous_session(loaded_store):
    response = client.post(
        "/interactions",
        json={"session_id": "sess-1", "product_id": "P4", "interaction_type": "view"},
    )

    assert response.status_code == 201
    assert response.json()["user_id"] == "sess-1"


def test_track_interaction_requires_an_actor(loaded_store):
    response = client.post(
        "/interactions",
        json={"product_id": "P4", "interaction_type": "view"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "InvalidRequestError"
    assert data["details"]["field"] == "user_id"
    assert "message" in data
    assert loaded_store.stats()["num_interactions"] == 11


def test_track_interaction_rejects_unknown_type(loaded_store):
    response = client.post(
        "/interactions",
        json={"user_id": "U1", "product_id": "P4", "interaction_type": "like"},
    )

    assert response.status_code == 422


def test_missing_data_directory_returns_503(tmp_path, monkeypatch):
    monkeypatch.setattr(recommend, "DEFAULT_DATA_DIR", str(tmp_path / "missing"))

    response = client.get("/recommend/trending")

    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "DataStoreUnavailableError"
    assert data["details"]["error_type"] == "FileNotFoundError"


def test_loads_data_directory_on_first_request(tmp_path, monkeypatch):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    make_interactions(utcnow()).to_csv(data_dir / "interactions.csv", index=False)
    make_products().to_csv(data_dir / "products.csv", index=False)
    monkeypatch.setattr(recommend, "DEFAULT_DATA_DIR", str(data_dir))

    response = client.get("/recommend/for-you?user_id=U1&limit=3")

    assert response.status_code == 200
    assert client.get("/status").json()["store_loaded"] is True
    assert client.get("/status").json()["data_dir"] == str(data_dir)


def test_metrics_endpoint(loaded_store):
    client.get("/recommend/for-you?user_id=U1")
    client.get("/recommend/for-you")
    client.get("/recommend/trending")

    response = client.get("/metrics")

    assert response.status_code == 200
    data = response.json()
    assert data["total_calls"] == 3
    assert data["operations"]["for_you"]["count"] == 2
    assert data["operations"]["trending"]["count"] == 1
    assert data["operations"]["for_you"]["max_latency_ms"] >= data["operations"]["for_you"]["min_latency_ms"]


def test_unknown_interaction_type_in_data_directory_returns_503(tmp_path, monkeypatch):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    interactions = make_interactions(utcnow())
    interactions.loc[0, "interaction_type"] = "click"
    interactions.to_csv(data_dir / "interactions.csv", index=False)
    make_products().to_csv(data_dir / "products.csv", index=False)
    monkeypatch.setattr(recommend, "DEFAULT_DATA_DIR", str(data_dir))

    response = client.get("/recommend/for-you?user_id=U1")

    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "DataStoreUnavailableError"
    assert data["details"]["error_type"] == "ValueError"
