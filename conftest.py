"""
Pytest configuration for the Brainfuck processor test suite.

    python -m pytest                  # everything
    python -m pytest -m "not slow"    # skip full 32768-cell data loads
"""


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers",
        "slow: tests that drive the full data-memory load protocol")
