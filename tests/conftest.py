"""Pytest configuration and shared fixtures."""

import pytest

# The smart_homes testing plugin is registered via a ``pytest11`` entry
# point (pyproject.toml) for external consumers.  In our own test suite
# we disable it (``-p no:smart_homes``) and load it here instead, so the
# package import chain happens after ``pytest-cov`` starts tracing.
pytest_plugins = ["smart_homes.testing._plugin"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (in-memory broker, many clients)"
    )
