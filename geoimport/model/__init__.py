"""In-memory geometry, raster and attribute-table model.

Every decode call builds fresh instances of these types and hands them to
a result sink once decoding has succeeded. Nothing here performs I/O.

Example:
    Build a collection by hand:
        >>> from geoimport.model import geometry
        >>> collection = geometry.GeometryCollection(name="roads")
        >>> path = geometry.Path()
        >>> path.move_to(0.0, 0.0)
        >>> path.line_to(1.0, 1.0)
        >>> collection.add(path)
        True
"""
