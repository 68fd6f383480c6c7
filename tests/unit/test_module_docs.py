"""
Module docstrings are real __doc__ values (placed before any import)
"""

import importlib
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)


@pytest.mark.parametrize("name", [
    "overlay.synchronizer",
    "overlay.session",
    "backend.search",
    "backend.point_source",
    "backend.annotations",
    "maps.locate",
    "maps.catalog",
])
def test_module_has_docstring(name):
    module = importlib.import_module(name)
    assert module.__doc__ and module.__doc__.strip()
