"""Pluggable import framework for geospatial files.

Given a file or another byte resource, the framework detects which of the
supported formats it holds, decodes it into an in-memory geometry or
raster model and delivers the result to a caller supplied sink.

- ESRI shapefile sets (.shp/.shx/.dbf), plain or gzip compressed
- ESRI ASCII grids, parsed by a streaming producer/consumer pipeline
- Raster images, georeferenced by world files
- Progress reporting with cooperative cancellation
- A FastAPI service for uploading files and cataloguing imported layers

See the module docstrings of geoimport.services for details.
"""
