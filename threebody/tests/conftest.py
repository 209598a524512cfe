"""
Pytest configuration and shared fixtures.
"""

import pytest

from threebody.presets import get_preset
from threebody.steppers import SteppingSource


class ManualStepper(SteppingSource):
    """Stepping source that never ticks on its own; tests call driver.tick()."""

    def __init__(self, log=None):
        super().__init__()
        self.log = log if log is not None else []
        self.running = False

    def start(self):
        self.running = True
        self.log.append(("start", self))

    def stop(self):
        if self.running:
            self.log.append(("stop", self))
        self.running = False

    def detach(self):
        super().detach()
        self.log.append(("detach", self))


@pytest.fixture
def figure_eight():
    """Chenciner-Montgomery figure-eight initial conditions."""
    return get_preset("figure-eight").bodies


@pytest.fixture
def manual_stepper():
    return ManualStepper()
