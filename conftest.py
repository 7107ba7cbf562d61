"""Pytest configuration to expose the geoimport package for imports."""

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
