"""
threebody: planar three-body simulation kernel with a local or remote stepping
driver and a FastAPI compute host.
"""

from .body import Body
from .configuration import Configuration, export_configuration, import_configuration
from .physics import accelerations, derivatives, multi_step, step
from .steppers import LocalStepper, RemoteStepper, SteppingSource
from .system import RunState, SimulationDriver

__version__ = "0.1.0"

__all__ = [
    "Body",
    "Configuration",
    "LocalStepper",
    "RemoteStepper",
    "RunState",
    "SimulationDriver",
    "SteppingSource",
    "accelerations",
    "derivatives",
    "export_configuration",
    "import_configuration",
    "multi_step",
    "step",
]
