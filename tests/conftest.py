"""Pytest hooks and fixtures."""

import socket

import pytest
from loguru import logger


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_socket: needs AF_UNIX sockets (skipped on platforms without them)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_socket tests where AF_UNIX is unavailable."""
    if hasattr(socket, "AF_UNIX"):
        return
    skip = pytest.mark.skip(reason="AF_UNIX sockets not available")
    for item in items:
        if "requires_socket" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _enable_ethipc_logging():
    """CLI runs disable the ethipc logger; turn it back on for every test."""
    logger.enable("ethipc")
    yield
    logger.enable("ethipc")
