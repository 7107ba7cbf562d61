"""API router subpackage for the geodata import service.

Submodules:
    - imports: Endpoints for uploading files, detecting their format and
      importing them into the layer catalog.
    - layers: Endpoints for listing and describing imported layers.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance.
"""
