from .config import CFG
from .runner import SimRunner
from .sim import Sim, SimulationLockError
from .snapshot import Publisher, Snapshot

__all__ = ["CFG", "Sim", "SimRunner", "SimulationLockError", "Publisher", "Snapshot"]
