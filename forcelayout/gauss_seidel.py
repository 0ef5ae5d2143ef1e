"""Gauss-Seidel relaxation orchestrator.

One tick is a strictly sequential state machine over four phases:

    points -> forward springs -> backward springs -> gather

Each phase binds its arguments, dispatches, and waits for device completion
before the next phase starts. The backward springs pass reads the positions
the forward pass just wrote (`next_points`) and writes back into
`cur_points`, so the second direction already sees the first direction's
update within the same tick.

Phase failures (`DispatchError` and other recoverable layout errors) are
logged and recorded on the `TickResult`; the tick carries on with whatever
buffer state resulted. `DeviceUnavailable` always propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from forcelayout.config import PhysicsConfig
from forcelayout.console import console
from forcelayout.errors import DeviceUnavailable, DispatchError, ForceLayoutError, InvalidArgument
from forcelayout.kernels.loader import ProgramLoader
from forcelayout.simulator import Simulator

POINTS_ARGS = (
    "num_points", "tiles_per_iteration", "input_positions", "output_positions",
    "tile_points", "width", "height", "charge", "gravity", "rand_values",
    "step_number",
)
SPRINGS_ARGS = (
    "tiles_per_iteration", "springs", "work_list", "edge_tags",
    "input_points", "output_points", "edge_strength0", "edge_distance0",
    "edge_strength1", "edge_distance1", "step_number",
)
GATHER_ARGS = ("springs", "work_list", "input_points", "spring_positions")

POINTS_PHYSICS = ("charge", "gravity")
SPRINGS_PHYSICS = ("edge_distance0", "edge_strength0", "edge_distance1", "edge_strength1")


class Phase(str, Enum):
    POINTS = "points"
    FORWARD_SPRINGS = "forward_springs"
    BACKWARD_SPRINGS = "backward_springs"
    GATHER = "gather"


class PhaseStatus(str, Enum):
    RAN = "ran"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PhaseResult:
    phase: Phase
    status: PhaseStatus
    error: Optional[ForceLayoutError] = None


@dataclass(frozen=True)
class TickResult:
    simulator: Simulator
    step_number: int
    phases: tuple[PhaseResult, ...]

    @property
    def degraded(self) -> bool:
        return any(r.status is PhaseStatus.FAILED for r in self.phases)

    @property
    def failures(self) -> tuple[PhaseResult, ...]:
        return tuple(r for r in self.phases if r.status is PhaseStatus.FAILED)

    def status(self, phase: Phase) -> PhaseStatus:
        for r in self.phases:
            if r.phase is phase:
                return r.status
        raise KeyError(phase)


class GaussSeidel:
    """Owns the points, springs and springs-gather kernels and sequences a tick."""

    def __init__(self, loader: ProgramLoader, physics: Optional[PhysicsConfig] = None) -> None:
        console.debug("Creating GaussSeidel kernels")
        self.gs_points = loader.load("gauss_seidel_points", POINTS_ARGS)
        self.gs_springs = loader.load("gauss_seidel_springs", SPRINGS_ARGS)
        self.gs_springs_gather = loader.load("gauss_seidel_springs_gather", GATHER_ARGS)
        self.physics = PhysicsConfig()
        self.set_physics(physics if physics is not None else self.physics)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_physics(self, cfg: PhysicsConfig | Mapping[str, float]) -> None:
        """Rebind physics scalars; effective from the next dispatch.

        Charge and gravity go to the points kernel only, spring parameters to
        the springs kernel only. Keys absent from `cfg` keep their binding.
        """
        values = cfg.as_kernel_args() if isinstance(cfg, PhysicsConfig) else dict(cfg)
        unknown = sorted(set(values) - set(PhysicsConfig.keys()))
        if unknown:
            raise InvalidArgument(f"unknown physics parameters: {unknown}")
        # Check every value against both kernels before binding anything.
        staged = []
        for kernel, names in ((self.gs_points, POINTS_PHYSICS), (self.gs_springs, SPRINGS_PHYSICS)):
            args = {name: kernel.schema.check(name, values[name]) for name in names if name in values}
            if args:
                staged.append((kernel, args))
        for kernel, args in staged:
            kernel.configure(**args)
        if values:
            self.physics = self.physics.replace(**{k: float(v) for k, v in values.items()})

    def set_points(self, sim: Simulator) -> None:
        width, height = sim.dimensions
        self.gs_points.configure(
            num_points=sim.num_points,
            tiles_per_iteration=sim.tiles_per_iteration,
            input_positions=sim.buffers["cur_points"],
            output_positions=sim.buffers["next_points"],
            tile_points=int(sim.config.tile_points_bytes),
            width=width,
            height=height,
            rand_values=sim.buffers["rand_values"],
            step_number=0,
        )

    def set_edges(self, sim: Simulator) -> None:
        self.gs_springs.configure(tiles_per_iteration=sim.tiles_per_iteration)
        self.gs_springs_gather.configure(
            springs=sim.buffers["forwards_edges"],
            work_list=sim.buffers["forwards_work_items"],
            input_points=sim.buffers["cur_points"],
            spring_positions=sim.buffers.staging("springs_pos"),
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _points(self, sim: Simulator, step_number: int) -> PhaseStatus:
        if sim.locked.lock_points:
            console.debug("Points are locked, nothing to do.")
            return PhaseStatus.SKIPPED
        b = sim.buffers
        self.gs_points.configure(
            step_number=step_number,
            input_positions=b["cur_points"],
            output_positions=b["next_points"],
        )
        resources = [b["cur_points"], b["next_points"], b["rand_values"]]
        self.gs_points.dispatch(sim.num_points, resources).wait()
        sim.tick_buffers(["next_points"])
        # Synchronous materialisation: later phases read cur_points directly.
        try:
            b.copy_into("next_points", "cur_points")
        except RuntimeError as e:
            raise DispatchError(f"copy next_points -> cur_points failed: {e}") from e
        return PhaseStatus.RAN

    def _springs(
        self,
        sim: Simulator,
        step_number: int,
        *,
        edges: str,
        work_items: str,
        num_work_items: int,
        from_points: str,
        to_points: str,
        tags: str,
    ) -> PhaseStatus:
        if sim.num_edges <= 0 or sim.locked.lock_edges:
            console.debug("Edges are locked, nothing to do.")
            return PhaseStatus.SKIPPED
        b = sim.buffers
        self.gs_springs.configure(
            springs=b[edges],
            work_list=b[work_items],
            input_points=b[from_points],
            output_points=b[to_points],
            step_number=step_number,
            edge_tags=b[tags],
        )
        resources = [b[edges], b[work_items], b[from_points], b[to_points]]
        self.gs_springs.dispatch(num_work_items, resources).wait()
        sim.tick_buffers([to_points])
        return PhaseStatus.RAN

    def _forward_springs(self, sim: Simulator, step_number: int) -> PhaseStatus:
        return self._springs(
            sim, step_number,
            edges="forwards_edges",
            work_items="forwards_work_items",
            num_work_items=sim.num_forwards_work_items,
            from_points="cur_points",
            to_points="next_points",
            tags="edge_tags",
        )

    def _backward_springs(self, sim: Simulator, step_number: int) -> PhaseStatus:
        return self._springs(
            sim, step_number,
            edges="backwards_edges",
            work_items="backwards_work_items",
            num_work_items=sim.num_backwards_work_items,
            from_points="next_points",
            to_points="cur_points",
            tags="edge_tags_reverse",
        )

    def _gather(self, sim: Simulator, step_number: int) -> PhaseStatus:
        locked = sim.locked
        if sim.num_edges <= 0 or (locked.lock_points and locked.lock_edges):
            return PhaseStatus.SKIPPED
        b = sim.buffers
        staging = b.staging("springs_pos")
        self.gs_springs_gather.configure(
            springs=b["forwards_edges"],
            work_list=b["forwards_work_items"],
            input_points=b["cur_points"],
            spring_positions=staging,
        )
        resources = [b["forwards_edges"], b["forwards_work_items"], b["cur_points"], staging]
        self.gs_springs_gather.dispatch(sim.num_forwards_work_items, resources).wait()
        # Publish the freshly written staging half.
        sim.tick_buffers(["springs_pos"])
        return PhaseStatus.RAN

    @staticmethod
    def _run_phase(phase: Phase, fn: Callable[[], PhaseStatus]) -> PhaseResult:
        try:
            return PhaseResult(phase, fn())
        except DeviceUnavailable:
            raise
        except ForceLayoutError as e:
            console.error(f"Kernel phase {phase.value} failed", detail=str(e))
            return PhaseResult(phase, PhaseStatus.FAILED, e)
        except Exception as e:
            err = DispatchError(f"{phase.value}: unexpected {type(e).__name__}: {e}")
            err.__cause__ = e
            console.error(f"Kernel phase {phase.value} failed", detail=str(err))
            return PhaseResult(phase, PhaseStatus.FAILED, err)

    def tick(self, sim: Simulator, step_number: int) -> TickResult:
        """Run one relaxation step. Always returns a usable state."""
        plan: tuple[tuple[Phase, Callable[[Simulator, int], PhaseStatus]], ...] = (
            (Phase.POINTS, self._points),
            (Phase.FORWARD_SPRINGS, self._forward_springs),
            (Phase.BACKWARD_SPRINGS, self._backward_springs),
            (Phase.GATHER, self._gather),
        )
        results = tuple(
            self._run_phase(phase, lambda fn=fn: fn(sim, step_number)) for phase, fn in plan
        )
        return TickResult(simulator=sim, step_number=step_number, phases=results)
