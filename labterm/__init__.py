"""LabTerm - simulated penetration-testing training terminal."""

__version__ = "0.1.0"

from .engine import SimulationEngine
from .results import CommandResult, ErrorKind

__all__ = ["SimulationEngine", "CommandResult", "ErrorKind", "__version__"]
