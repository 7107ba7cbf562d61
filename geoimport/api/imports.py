"""File upload, format detection and import API endpoints.

Files are uploaded first and kept in a directory of their own, so that
all members of a multi-file dataset (e.g. .shp, .shx and .dbf) can be
uploaded together. The detect endpoint reports which format handler
would read each dataset of an upload; the import endpoint decodes the
datasets and registers them in the layer catalog.

Example:
    Upload and import a shapefile set:
        >>> # Step 1: Upload the members of the set
        >>> response = client.post(
        ...     "/api/imports/upload",
        ...     files=[
        ...         ("files", ("roads.shp", open("roads.shp", "rb"))),
        ...         ("files", ("roads.shx", open("roads.shx", "rb"))),
        ...         ("files", ("roads.dbf", open("roads.dbf", "rb"))),
        ...     ],
        ... )
        >>> upload_id = response.json()["upload_id"]

        >>> # Step 2: Import
        >>> response = client.post(f"/api/imports/{upload_id}")
        >>> layers = response.json()["layers"]
"""

from __future__ import annotations

import dataclasses
import pathlib
import shutil
import tempfile
import uuid
from typing import Any, TypedDict

import fastapi
from loguru import logger

from geoimport.core import config, errors
from geoimport.db import database
from geoimport.db import models as db_models
from geoimport.model import outcome
from geoimport.services import registry, sinks

router = fastapi.APIRouter(prefix="/api/imports", tags=["imports"])

_upload_cache: dict[str, pathlib.Path] = {}


class UploadResponse(TypedDict):
    upload_id: str
    filenames: list[str]
    path: str


def get_repository(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.LayerRepositoryProtocol:
    """Resolve the layer repository dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        LayerRepositoryProtocol implementation selected by
        ``catalog_backend``.
    """
    return database.get_layer_repository(settings)


def get_registry(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> registry.FormatRegistry:
    """Resolve the format registry dependency.

    Raises:
        HTTPException: If the configured handler order is invalid.
    """
    try:
        return registry.FormatRegistry.from_settings(settings)
    except errors.HandlerConfigError as e:
        raise fastapi.HTTPException(status_code=500, detail=str(e)) from e


def serialize_layer(layer: db_models.LayerMetadata) -> dict[str, Any]:
    """Convert layer metadata to JSON compatible values."""
    result = dataclasses.asdict(layer)
    if result.get("created_at") is not None:
        result["created_at"] = result["created_at"].isoformat()
    if result.get("bbox") is not None:
        result["bbox"] = list(result["bbox"])
    return result


def _safe_filename(filename: str | None) -> str:
    """Strip directories from a client supplied file name.

    Raises:
        HTTPException: If nothing usable remains.
    """
    name = pathlib.PurePath(filename or "").name
    if name in ("", ".", ".."):
        raise fastapi.HTTPException(status_code=400, detail="Invalid file name")
    return name


def _save_upload(
    file: fastapi.UploadFile,
    target_dir: pathlib.Path,
    max_size: int,
) -> pathlib.Path:
    """Persist an uploaded file to disk with size validation.

    Args:
        file: FastAPI UploadFile object containing the file data.
        target_dir: Directory where the file should be saved.
        max_size: Maximum allowed file size in bytes.

    Returns:
        Path to the saved file.

    Raises:
        HTTPException: If the file exceeds the maximum size limit.
    """
    target_path = target_dir / _safe_filename(file.filename)
    with tempfile.NamedTemporaryFile(delete=False, dir=target_dir) as tmp:
        size = 0
        for chunk in iter(lambda: file.file.read(1024 * 1024), b""):
            size += len(chunk)
            if size > max_size:
                tmp.close()
                pathlib.Path(tmp.name).unlink(missing_ok=True)
                raise fastapi.HTTPException(
                    status_code=413,
                    detail="Upload too large",
                )

            tmp.write(chunk)

        tmp.flush()

    shutil.move(tmp.name, target_path)

    return target_path


def _upload_files(upload_id: str) -> list[pathlib.Path]:
    upload_dir = _upload_cache.get(upload_id)
    if upload_dir is None:
        raise fastapi.HTTPException(status_code=404, detail="Upload not found")
    return sorted(path for path in upload_dir.iterdir() if path.is_file())


def _release_upload(upload_id: str, keep_files: bool) -> None:
    upload_dir = _upload_cache.pop(upload_id, None)
    if upload_dir is None or keep_files:
        return
    shutil.rmtree(upload_dir, ignore_errors=True)
    logger.info(f"Removed upload {upload_id} without registered layers")


@router.post("/upload")
async def upload_files(
    files: list[fastapi.UploadFile],
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> UploadResponse:
    """Accept one or more files and store them under a new upload id.

    Upload all members of a multi-file dataset in one request so that
    they end up next to each other.

    Args:
        files: Uploaded files from multipart form data.
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        Dictionary containing upload_id, the stored file names and the
        upload directory.

    Raises:
        HTTPException: If a file exceeds the maximum upload size or has
            no usable name.
    """
    upload_id = str(uuid.uuid4())
    upload_dir = settings.storage_dir / upload_id
    upload_dir.mkdir(parents=True, exist_ok=True)

    saved = [
        _save_upload(file, upload_dir, settings.max_upload_size_bytes)
        for file in files
    ]
    _upload_cache[upload_id] = upload_dir
    logger.info(f"Stored upload {upload_id} with {len(saved)} files")

    return UploadResponse(
        upload_id=upload_id,
        filenames=[path.name for path in saved],
        path=str(upload_dir),
    )


@router.get("/{upload_id}/detect")
def detect_formats(
    upload_id: str,
    formats: registry.FormatRegistry = fastapi.Depends(get_registry),  # noqa: B008
) -> list[dict[str, str]]:
    """Report which handler would import each dataset of an upload.

    Members of one multi-file dataset are reported once, under the file
    that will actually be decoded. Files no handler accepts are omitted.

    Example:
        >>> client.get(f"/api/imports/{upload_id}/detect").json()
        >>> # Returns: [{"resource": "roads.shp", "handler": "shapefile"}]
    """
    detections = formats.detect_many(_upload_files(upload_id))
    return [
        {"resource": detection.resource.name, "handler": detection.handler.name}
        for detection in detections.values()
    ]


@router.post("/{upload_id}")
def import_upload(
    upload_id: str,
    formats: registry.FormatRegistry = fastapi.Depends(get_registry),  # noqa: B008
    repo: database.LayerRepositoryProtocol = fastapi.Depends(get_repository),  # noqa: B008
) -> dict[str, Any]:
    """Import every dataset of an upload and register it in the catalog.

    Each dataset is imported independently; a failing dataset is reported
    in ``errors`` and does not prevent the others from being imported.

    Returns:
        Dictionary with the registered ``layers`` and the ``errors`` of
        datasets that could not be imported.

    An upload is imported once. Its files stay on disk while registered
    layers refer to them and are removed otherwise.

    Raises:
        HTTPException: 404 if the upload is unknown, 422 if no dataset
            could be imported.
    """
    layers: list[db_models.LayerMetadata] = []
    failures: list[dict[str, str]] = []
    try:
        detections = formats.detect_many(_upload_files(upload_id))
        if not detections:
            raise fastapi.HTTPException(
                status_code=422,
                detail="No supported geodata format found in upload",
            )

        for detection in detections.values():
            sink = sinks.CatalogSink(
                repo, detection.resource.id, handler=detection.handler.name
            )
            result = formats.decode(detection, sink)
            if isinstance(result, outcome.Failed):
                failures.append(
                    {
                        "resource": detection.resource.name,
                        "kind": str(result.kind),
                        "message": result.message,
                    }
                )
            layers.extend(sink.layers)
    finally:
        _release_upload(upload_id, keep_files=bool(layers))

    if not layers and failures:
        raise fastapi.HTTPException(status_code=422, detail=failures)
    return {
        "layers": [serialize_layer(layer) for layer in layers],
        "errors": failures,
    }
