"""
Pytest configuration for the CHIP-8 test suite.

    python -m pytest            # everything that can run here
    python -m pytest -m "not display"

Display tests open a real pygame window on SDL's dummy video driver, so
they run on machines with no screen; they are skipped when pygame or
numpy is not installed.
"""

import importlib.util
import os

import pytest


def pytest_configure(config):
    """Register markers and force headless SDL."""
    config.addinivalue_line("markers",
        "display: tests that need pygame + numpy (skipped when missing)")
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")


def _have(module: str) -> bool:
    return importlib.util.find_spec(module) is not None


def pytest_collection_modifyitems(config, items):
    if _have("pygame") and _have("numpy"):
        return
    skip = pytest.mark.skip(reason="pygame/numpy not installed")
    for item in items:
        if "display" in item.keywords:
            item.add_marker(skip)
