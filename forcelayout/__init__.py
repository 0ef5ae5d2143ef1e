"""GPU force-directed graph layout via Gauss-Seidel relaxation."""
from __future__ import annotations

from .config import LockFlags, PhysicsConfig, SimulationConfig
from .errors import (
    DeviceUnavailable,
    DispatchError,
    ForceLayoutError,
    InvalidArgument,
    PartitionError,
    TypeMismatch,
)
from .gauss_seidel import GaussSeidel, Phase, PhaseResult, PhaseStatus, TickResult
from .graph import GraphArrays, build_directional_edges, random_graph
from .session import LayoutSession
from .simulator import Simulator

__all__ = [
    "DeviceUnavailable",
    "DispatchError",
    "ForceLayoutError",
    "GaussSeidel",
    "GraphArrays",
    "InvalidArgument",
    "LayoutSession",
    "LockFlags",
    "PartitionError",
    "Phase",
    "PhaseResult",
    "PhaseStatus",
    "PhysicsConfig",
    "SimulationConfig",
    "Simulator",
    "TickResult",
    "TypeMismatch",
    "build_directional_edges",
    "random_graph",
]
