"""
wte_server package

This package contains the web terminal exec server (FastAPI service) that
prepares terminal sessions inside DevWorkspace containers and stops the
DevWorkspace after a period of inactivity. It is intentionally lightweight at
import time and does not build the FastAPI app on import.

Public surface:
- __version__: string version of the server package

To run the service (example):
    web-terminal-exec
"""

from .app import __version__

__all__ = ["__version__"]
