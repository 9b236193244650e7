"""Root conftest.py for the conform harness.

Puts every package's src directory on the import path and registers the
markers shared by all packages.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from _pytest.config import Config


# Add all package src directories to path for imports
PROJECT_ROOT = Path(__file__).parent
PACKAGE_DIRS = sorted(PROJECT_ROOT.glob("conform-*/src"))
for pkg_dir in PACKAGE_DIRS:
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "slow: Test waits on real device timing for a second or more",
    )
    config.addinivalue_line(
        "markers",
        "integration: Test needs a live Alpaca device server",
    )


def pytest_report_header(config: Config) -> list[str]:
    """Name the packages under test in the pytest header."""
    return [
        "conform harness test suite",
        "packages: " + ", ".join(p.parent.name for p in PACKAGE_DIRS),
    ]
