"""
Convwin - A line-buffer sliding window generator in Amaranth HDL.

This package generates gateware that cuts fixed-size, zero-padded, strided
windows out of a raster-scanned sample stream, together with the software
models used to verify it.

Components:
    WindowConfig: Configuration dataclass for the engine
    LineBuffer: Per-column rolling storage of the last window_y rows
    WindowEngine: Position tracker, controller FSM and window emitter
    WindowEngineModel: Cycle-accurate behavioral model
    reference_windows: NumPy golden model
    simulate_frames: Amaranth simulation harness
"""

from .config import WindowConfig
from .control import EngineState
from .engine import WindowEngine
from .line_buffer import LineBuffer
from .model import StepResult, WindowEngineModel
from .reference import reference_windows
from .sim import SimulationResult, SimulationTimeout, StallProfile, simulate_frames
from .util.columns import Window

__version__ = "0.1.0"
__all__ = [
    "WindowConfig",
    "EngineState",
    "LineBuffer",
    "WindowEngine",
    "WindowEngineModel",
    "StepResult",
    "Window",
    "reference_windows",
    "simulate_frames",
    "SimulationResult",
    "SimulationTimeout",
    "StallProfile",
    "__version__",
]
