from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Literal, Mapping

from forcelayout.kernels.runtime import get_device

Backend = Literal["auto", "torch", "triton"]


@dataclass(frozen=True)
class PhysicsConfig:
    """Scalar physics parameters for one layout session.

    Edge kind "0" and kind "1" carry separate spring parameters so visible and
    structural edges can be tuned independently.
    """

    # [FORMULA] repulsion on i from j: -charge * (p_i - p_j) / |p_i - p_j|^2
    charge: float = -1.0e-4
    # [FORMULA] pull toward the canvas centre: gravity * (centre - p_i)
    gravity: float = 0.02
    # [FORMULA] spring pull on dst: strength * (1 - distance / |d|) * d, d = p_src - p_dst
    edge_strength0: float = 1.0
    edge_distance0: float = 0.02
    edge_strength1: float = 0.5
    edge_distance1: float = 0.05

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def as_kernel_args(self) -> dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}

    def replace(self, **changes: Any) -> "PhysicsConfig":
        return replace(self, **changes)


@dataclass
class LockFlags:
    """Runtime toggles that suppress the points pass and/or the spring passes."""

    lock_points: bool = False
    lock_edges: bool = False

    def update(self, values: Mapping[str, bool]) -> None:
        for name, value in values.items():
            if name not in ("lock_points", "lock_edges"):
                raise KeyError(f"unknown lock flag {name!r}")
            setattr(self, name, bool(value))


@dataclass
class SimulationConfig:
    """Configuration for a layout session."""

    # Canvas
    width: float = 1.0
    height: float = 1.0

    # Device / kernel backend
    device: str = field(default_factory=get_device)
    backend: Backend = "auto"

    # Reproducibility: seeds the initial layout and the jitter stream
    seed: int = 0
    num_rand_values: int = 4096

    # Points pass tiling: the all-pairs sum is split into this many source tiles
    tiles_per_iteration: int = 8
    # Shared-memory budget per tile in the points pass (bytes)
    tile_points_bytes: int = 2048

    # Warn after this many consecutive degraded ticks
    degraded_tick_warn_after: int = 5

    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    locks: LockFlags = field(default_factory=LockFlags)

    @property
    def dimensions(self) -> tuple[float, float]:
        return (float(self.width), float(self.height))
