"""Kernel handles: a compiled routine plus its argument bindings.

A handle never owns buffers. It keeps references to whatever tensors were
bound last and hands them to the routine on dispatch.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

import torch

from forcelayout.console import console
from forcelayout.errors import DeviceUnavailable, DispatchError
from forcelayout.kernels.args import ArgSchema

# CUDA grids cap the x dimension at 2**31 - 1 blocks.
MAX_GLOBAL_SIZE = 2**31 - 1

_DEVICE_LOSS_MARKERS = (
    "device-side assert triggered",
    "unspecified launch failure",
    "an illegal memory access was encountered",
    "device lost",
)


class Program(Protocol):
    def __call__(self, global_size: int, **args: Any) -> None: ...


def _is_device_loss(err: BaseException) -> bool:
    msg = str(err).lower()
    return any(marker in msg for marker in _DEVICE_LOSS_MARKERS)


class Completion:
    """Completion signal for one dispatch."""

    __slots__ = ("kernel", "_event")

    def __init__(self, kernel: str, event: Optional[torch.cuda.Event] = None) -> None:
        self.kernel = kernel
        self._event = event

    def done(self) -> bool:
        return self._event is None or bool(self._event.query())

    def wait(self) -> None:
        if self._event is None:
            return
        try:
            self._event.synchronize()
        except RuntimeError as e:
            if _is_device_loss(e):
                raise DeviceUnavailable(f"{self.kernel}: device lost while waiting: {e}") from e
            raise DispatchError(f"{self.kernel}: device reported failure: {e}") from e


class KernelHandle:
    """One compute routine with a persistent argument binding table."""

    def __init__(
        self,
        name: str,
        schema: ArgSchema,
        program: Program | Callable[..., None],
        *,
        device: str | torch.device = "cpu",
        max_global_size: int = MAX_GLOBAL_SIZE,
    ) -> None:
        self.name = name
        self.schema = schema
        self.program = program
        self.device = torch.device(device)
        self.max_global_size = int(max_global_size)
        self.dispatch_count = 0
        self.last_resources: tuple[torch.Tensor, ...] = ()
        self._bound: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"KernelHandle({self.name!r}, bound={len(self._bound)}/{len(self.schema)})"

    @property
    def bound(self) -> dict[str, Any]:
        return dict(self._bound)

    def missing(self) -> list[str]:
        return [n for n in self.schema if n not in self._bound]

    def configure(self, **args: Any) -> "KernelHandle":
        """Bind a subset of arguments. Earlier bindings persist."""
        checked = {name: self.schema.check(name, value) for name, value in args.items()}
        self._bound.update(checked)
        return self

    def dispatch(self, global_size: int, resources: Sequence[torch.Tensor] = ()) -> Completion:
        """Run the routine over `global_size` workers."""
        missing = self.missing()
        if missing:
            raise DispatchError(f"{self.name}: argument binding incomplete, missing {missing}")
        global_size = int(global_size)
        if global_size < 0 or global_size > self.max_global_size:
            raise DispatchError(
                f"{self.name}: global size {global_size} outside device limit [0, {self.max_global_size}]"
            )
        for res in resources:
            if res.device.type != self.device.type:
                raise DispatchError(
                    f"{self.name}: resource on {res.device} is unavailable to a {self.device.type} dispatch"
                )
        self.last_resources = tuple(resources)

        console.debug(f"Running {self.name}", detail=f"global_size={global_size}")
        try:
            self.program(global_size, **self._bound)
        except DeviceUnavailable:
            raise
        except DispatchError:
            raise
        except torch.cuda.OutOfMemoryError as e:
            raise DispatchError(f"{self.name}: device out of memory: {e}") from e
        except Exception as e:
            # compile errors from the JIT backend are not RuntimeErrors
            if _is_device_loss(e):
                raise DeviceUnavailable(f"{self.name}: device lost: {e}") from e
            raise DispatchError(f"{self.name}: dispatch failed: {e}") from e
        finally:
            self.dispatch_count += 1

        event = None
        if self.device.type == "cuda":
            event = torch.cuda.Event()
            event.record()
        return Completion(self.name, event)
