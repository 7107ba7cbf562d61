"""Catalog query API endpoints for imported layers.

Example:
    List all imported layers:
        >>> response = client.get("/api/layers")
        >>> layers = response.json()
        >>> # Returns: [{"id": "1", "name": "roads", "kind": "vector",
        >>> #           "handler": "shapefile", ...}, ...]

    Get bounding box for a specific layer:
        >>> response = client.get("/api/layers/layer_123/bbox")
        >>> bbox = response.json()["bbox"]
        >>> # Format: [minx, miny, maxx, maxy] in source coordinates
"""

from typing import Any

import fastapi

from geoimport.api import imports
from geoimport.db import database
from geoimport.db import models as db_models

BBox = tuple[float, float, float, float]

router = fastapi.APIRouter(prefix="/api/layers", tags=["layers"])


def _get_layer(
    layer_id: str, repo: database.LayerRepositoryProtocol
) -> db_models.LayerMetadata:
    layer = repo.get(layer_id)
    if not layer:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Layer not found",
        )
    return layer


@router.get("")
async def list_layers(
    repo: database.LayerRepositoryProtocol = fastapi.Depends(imports.get_repository),  # noqa: B008
) -> list[dict[str, Any]]:
    """List all imported layers.

    Args:
        repo: Layer repository (injected via FastAPI Depends).

    Returns:
        List of layer metadata dictionaries. Each dictionary contains all
        LayerMetadata fields.
    """
    return [imports.serialize_layer(layer) for layer in repo.all()]


@router.get("/{layer_id}")
async def get_layer(
    layer_id: str,
    repo: database.LayerRepositoryProtocol = fastapi.Depends(imports.get_repository),  # noqa: B008
) -> dict[str, Any]:
    """Get the metadata of one imported layer.

    Raises:
        HTTPException: If the layer is not found (404 status code).
    """
    return imports.serialize_layer(_get_layer(layer_id, repo))


@router.get("/{layer_id}/bbox")
async def get_layer_bbox(
    layer_id: str,
    repo: database.LayerRepositoryProtocol = fastapi.Depends(imports.get_repository),  # noqa: B008
) -> dict[str, BBox | None]:
    """Get the bounding box for an imported layer.

    Args:
        layer_id: Unique identifier for the layer.
        repo: Layer repository (injected via FastAPI Depends).

    Returns:
        Dictionary containing the bounding box as [minx, miny, maxx, maxy]
        in the coordinates of the source data, or None for empty layers.

    Raises:
        HTTPException: If the layer is not found (404 status code).
    """
    return {"bbox": _get_layer(layer_id, repo).bbox}
