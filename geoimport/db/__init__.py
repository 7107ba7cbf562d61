"""Catalog of imported layers.

Re-exports LayerRepositoryProtocol and the repository factory from
geoimport.db.database so that services and FastAPI dependencies have one
stable import location.

Example:
    Use in a service or FastAPI dependency:
        >>> from geoimport.db import LayerRepositoryProtocol, get_layer_repository
        >>> repo = get_layer_repository(settings)
"""

from geoimport.db.database import LayerRepositoryProtocol, get_layer_repository

__all__ = ["LayerRepositoryProtocol", "get_layer_repository"]
