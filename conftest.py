"""
Root pytest configuration.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics() -> Generator[None, None, None]:
    """Reset the diagnostics module before and after each test.

    The diagnostics module caches the `internal_logging_enabled` setting
    on first access and keeps a module-level writer. Resetting both keeps
    tests from inheriting state from one another.
    """
    import lokiship.core.diagnostics as diag

    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture()
def capture_diagnostics(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[list[dict], None, None]:
    """Enable internal logging and collect emitted diagnostics."""
    import lokiship.core.diagnostics as diag

    monkeypatch.setenv("LOKISHIP_INTERNAL_LOGGING_ENABLED", "true")
    captured: list[dict] = []
    diag.set_writer_for_tests(captured.append)
    yield captured
