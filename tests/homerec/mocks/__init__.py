"""Test doubles for HomeRec."""

from tests.homerec.mocks.clock import FakeClock
from tests.homerec.mocks.process import FakeLauncher, FakeProcess
from tests.homerec.mocks.storage import FakeInventory, FakeReclaimer, FakeSampler

__all__ = [
    "FakeClock",
    "FakeInventory",
    "FakeLauncher",
    "FakeProcess",
    "FakeReclaimer",
    "FakeSampler",
]
