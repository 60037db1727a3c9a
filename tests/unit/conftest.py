"""Pytest configuration for unit tests.

Unit tests must not reach the network: every outgoing call is made against a
mock session or an injected client. This conftest blocks ``requests`` and
``socket.create_connection`` for every test under ``tests/unit`` so a missing
mock fails loudly instead of calling a real API.
"""

import socket
from unittest.mock import patch

import pytest
import requests


class NetworkCallDetectedError(Exception):
    """Raised when a unit test attempts to make a network call."""

    def __init__(self, library_name: str, call_type: str):
        self.library_name = library_name
        self.call_type = call_type
        super().__init__(
            f"Network call detected in unit test: {library_name}.{call_type}()\n"
            f"Unit tests must not make network calls. Use mocks instead."
        )


def _create_network_blocker(library_name: str, call_type: str):
    """Create a function that blocks network calls and raises an error."""

    def blocker(*args, **kwargs):
        raise NetworkCallDetectedError(library_name, call_type)

    return blocker


@pytest.fixture(autouse=True)
def block_network():
    """Automatically block network calls in unit tests."""
    patchers = [
        patch.object(
            requests.Session,
            "request",
            side_effect=_create_network_blocker("requests.Session", "request"),
        ),
        patch.object(
            socket,
            "create_connection",
            side_effect=_create_network_blocker("socket", "create_connection"),
        ),
    ]
    for patcher in patchers:
        patcher.start()
    yield
    for patcher in patchers:
        patcher.stop()
