"""
pytest configuration for the raftsim tests.

Every async test runs on a VirtualTimeEventLoop, so election timeouts,
heartbeats and the waits in the cluster harness cost no wall clock time
and happen in the same order on every run.
"""
import pytest

from raftsim.simulation.virtual_time import VirtualTimeLoopPolicy


@pytest.fixture(scope="session")
def event_loop_policy():
    """Run async tests on the virtual clock."""
    return VirtualTimeLoopPolicy()
