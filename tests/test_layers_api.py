"""API endpoint tests for the layer catalog endpoints.

This module provides tests for the /api/layers endpoints, covering the
listing of imported layers, single layer lookup and bounding boxes. The
layer repository is injected using dependency overrides.
"""

from __future__ import annotations

from fastapi import testclient

from geoimport import main
from geoimport.api import imports
from geoimport.db import database
from geoimport.db import models as db_models


def _client(repo: database.LayerRepositoryProtocol) -> testclient.TestClient:
    app = main.create_app()
    app.dependency_overrides[imports.get_repository] = lambda: repo
    return testclient.TestClient(app)


def test_list_layers_empty() -> None:
    """Test listing layers when repository is empty."""
    client = _client(database.InMemoryLayerRepository())
    response = client.get("/api/layers")
    assert response.status_code == 200
    assert response.json() == []


def test_list_layers_multiple() -> None:
    """Test listing vector and raster layers."""
    repo = database.InMemoryLayerRepository()
    repo.add(
        db_models.LayerMetadata(
            id="layer1", name="cities", source="/a/cities.shp", kind="vector"
        )
    )
    repo.add(
        db_models.LayerMetadata(
            id="layer2",
            name="dem",
            source="/b/dem.asc",
            kind="grid",
            width=3,
            height=2,
        )
    )
    response = _client(repo).get("/api/layers")
    assert response.status_code == 200
    layers = response.json()
    assert {layer["name"] for layer in layers} == {"cities", "dem"}
    assert {layer["kind"] for layer in layers} == {"vector", "grid"}


def test_get_layer() -> None:
    """Test getting the metadata of one layer."""
    repo = database.InMemoryLayerRepository()
    repo.add(
        db_models.LayerMetadata(
            id="layer1",
            name="cities",
            source="/a/cities.shp",
            kind="vector",
            handler="shapefile",
            feature_count=3,
            table_rows=3,
        )
    )
    response = _client(repo).get("/api/layers/layer1")
    assert response.status_code == 200
    body = response.json()
    assert body["handler"] == "shapefile"
    assert body["feature_count"] == 3
    assert body["table_rows"] == 3
    assert "created_at" in body


def test_get_layer_not_found() -> None:
    """Test getting a non-existent layer returns 404."""
    response = _client(database.InMemoryLayerRepository()).get("/api/layers/missing")
    assert response.status_code == 404


def test_get_layer_bbox_not_found() -> None:
    """Test getting bbox for non-existent layer returns 404."""
    response = _client(database.InMemoryLayerRepository()).get(
        "/api/layers/nonexistent/bbox"
    )
    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()


def test_get_layer_bbox_with_bbox() -> None:
    """Test getting bbox for layer with bounding box."""
    repo = database.InMemoryLayerRepository()
    repo.add(
        db_models.LayerMetadata(
            id="layer1",
            name="dem",
            source="/b/dem.asc",
            kind="grid",
            bbox=(100.0, 200.0, 120.0, 210.0),
        )
    )
    response = _client(repo).get("/api/layers/layer1/bbox")
    assert response.status_code == 200
    assert response.json()["bbox"] == [100.0, 200.0, 120.0, 210.0]


def test_get_layer_bbox_none_bbox() -> None:
    """Test getting bbox for an empty layer."""
    repo = database.InMemoryLayerRepository()
    repo.add(
        db_models.LayerMetadata(id="layer2", name="empty", source="/e.shp", kind="vector")
    )
    response = _client(repo).get("/api/layers/layer2/bbox")
    assert response.status_code == 200
    assert response.json()["bbox"] is None
