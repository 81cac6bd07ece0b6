"""
Test session bootstrap for web-terminal-exec

Ensures the in-repo wte_server package is importable without requiring an
editable install, and that shared fakes under tests/ can be imported.

- Adds src/ to sys.path so `import wte_server` works.
- Adds tests/ to sys.path so `import k8s_fakes` works.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _add_sys_path(p: Path) -> None:
    """
    Prepend a filesystem path to sys.path if it's not already present.
    """
    rp = str(p.resolve())
    if rp not in sys.path:
        sys.path.insert(0, rp)


_THIS_FILE = Path(__file__).resolve()
_TESTS_DIR = _THIS_FILE.parent
_PROJECT_DIR = _TESTS_DIR.parent

_add_sys_path(_PROJECT_DIR / "src")
_add_sys_path(_TESTS_DIR)


from k8s_fakes import make_settings  # noqa: E402
from wte_server.app.config import ServerConfig  # noqa: E402


@pytest.fixture
def settings() -> ServerConfig:
    return make_settings(HOSTNAME="workspace-pod-1")
