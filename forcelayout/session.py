"""Layout session: the driver that owns one simulator and one orchestrator.

Sessions never share buffers; running several layouts at once means building
several sessions.
"""

from __future__ import annotations

from typing import Mapping, Optional

import numpy as np
import torch

from forcelayout.config import PhysicsConfig, SimulationConfig
from forcelayout.console import console
from forcelayout.gauss_seidel import GaussSeidel, TickResult
from forcelayout.graph import GraphArrays
from forcelayout.kernels.loader import ProgramLoader
from forcelayout.simulator import Simulator


class LayoutSession:
    """Runs Gauss-Seidel ticks over one graph.

    Construction is where fatal problems surface: malformed partitions raise
    `PartitionError`, an unusable device or backend raises
    `DeviceUnavailable`. After that, `tick()` only raises `DeviceUnavailable`.
    """

    def __init__(
        self,
        graph: GraphArrays,
        config: Optional[SimulationConfig] = None,
        *,
        positions: Optional[np.ndarray] = None,
        loader: Optional[ProgramLoader] = None,
    ) -> None:
        self.config = config if config is not None else SimulationConfig()
        self.loader = loader if loader is not None else ProgramLoader(self.config.device, self.config.backend)
        self.simulator = Simulator(graph, self.config, positions=positions)
        self.gauss_seidel = GaussSeidel(self.loader, self.config.physics)
        self.gauss_seidel.set_points(self.simulator)
        self.gauss_seidel.set_edges(self.simulator)

        self.step_number = 0
        self.degraded_ticks = 0
        self.consecutive_degraded = 0

    @property
    def physics(self) -> PhysicsConfig:
        return self.gauss_seidel.physics

    def set_physics(self, cfg: PhysicsConfig | Mapping[str, float]) -> None:
        self.gauss_seidel.set_physics(cfg)

    def set_locks(self, *, lock_points: Optional[bool] = None, lock_edges: Optional[bool] = None) -> None:
        values = {}
        if lock_points is not None:
            values["lock_points"] = lock_points
        if lock_edges is not None:
            values["lock_edges"] = lock_edges
        self.simulator.locked.update(values)

    def tick(self) -> TickResult:
        self.step_number += 1
        result = self.gauss_seidel.tick(self.simulator, self.step_number)
        if result.degraded:
            self.degraded_ticks += 1
            self.consecutive_degraded += 1
            limit = int(self.config.degraded_tick_warn_after)
            if limit > 0 and self.consecutive_degraded % limit == 0:
                failed = ", ".join(r.phase.value for r in result.failures)
                console.warn(
                    f"{self.consecutive_degraded} consecutive degraded ticks",
                    detail=f"step {self.step_number}, failed phases: {failed}",
                )
        else:
            self.consecutive_degraded = 0
        return result

    def run(self, num_ticks: int) -> Optional[TickResult]:
        result = None
        for _ in range(int(num_ticks)):
            result = self.tick()
        return result

    def positions(self) -> torch.Tensor:
        return self.simulator.positions()

    def spring_positions(self) -> torch.Tensor:
        return self.simulator.spring_positions()

    def spring_midpoints(self) -> torch.Tensor:
        return self.spring_positions().mean(dim=1)

    def forward_edges(self) -> np.ndarray:
        """(src, dst) of each row of `spring_positions()`."""
        return self.simulator.edges.forward.edges.copy()

    def buffer_versions(self) -> dict[str, int]:
        return self.simulator.buffers.versions()
