"""Shared fixtures for the VALIS test suite."""

import pytest

from valis.ledger import Landscape
from tests.helpers import TickingClock


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def landscape(clock):
    return Landscape(clock=clock)
