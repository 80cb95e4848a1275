"""Shared fixtures for the LabTerm tests."""

import pytest

from labterm.ctf import CtfBoard
from labterm.engine import SimulationEngine
from labterm.filesystem import VirtualFilesystem
from labterm.metrics import reset_metrics_collector
from labterm.session import SessionState, SessionStore


@pytest.fixture(autouse=True)
def fresh_metrics_collector():
    """Each test gets its own collector instance."""
    reset_metrics_collector()
    yield
    reset_metrics_collector()


@pytest.fixture
def engine():
    """An engine with its own session arena and CTF board."""
    return SimulationEngine(store=SessionStore(), ctf=CtfBoard(), require_meterpreter_session=False)


@pytest.fixture
def gated_engine():
    """An engine that only allows Meterpreter commands after an exploit."""
    return SimulationEngine(store=SessionStore(), ctf=CtfBoard(), require_meterpreter_session=True)


@pytest.fixture
def state():
    """A fresh session state for the default student."""
    return SessionState()


@pytest.fixture
def fs():
    """A freshly seeded virtual filesystem."""
    return VirtualFilesystem()
