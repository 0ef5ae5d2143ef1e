"""Compute-program loader and backend selection.

Policy:
- Pick the fastest supported routine set deterministically for the device.
- If an explicitly requested backend or device is unavailable, fail loudly
  with `DeviceUnavailable`.
- Log the chosen backend exactly once per loader.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

import torch

from forcelayout.console import console
from forcelayout.errors import DeviceUnavailable, InvalidArgument
from forcelayout.kernels.args import ArgSchema
from forcelayout.kernels.handle import KernelHandle
from forcelayout.kernels.runtime import cuda_supported, device_summary, triton_supported

_TRITON_MODULE = "forcelayout.kernels.triton.relaxation_kernels"


@dataclass(frozen=True, slots=True)
class BackendInfo:
    backend: str
    device: torch.device
    cuda_available: bool
    triton_available: bool


def resolve_backend(device: str | torch.device, backend: str = "auto") -> BackendInfo:
    dev = torch.device(device)
    cuda_ok = cuda_supported()
    triton_ok = triton_supported()

    if dev.type == "cuda" and not cuda_ok:
        raise DeviceUnavailable("device 'cuda' requested but CUDA is not available")
    if dev.type == "mps" and not torch.backends.mps.is_available():
        raise DeviceUnavailable("device 'mps' requested but MPS is not available")

    if backend == "auto":
        chosen = "triton" if (dev.type == "cuda" and triton_ok) else "torch"
    elif backend == "triton":
        if dev.type != "cuda":
            raise DeviceUnavailable(f"Triton backend requires device='cuda', got '{dev}'")
        if not triton_ok:
            raise DeviceUnavailable("Triton backend requested but triton is not installed")
        chosen = "triton"
    elif backend == "torch":
        chosen = "torch"
    else:
        raise ValueError(f"unknown kernel backend {backend!r}")

    return BackendInfo(backend=chosen, device=dev, cuda_available=cuda_ok, triton_available=triton_ok)


class ProgramLoader:
    """Produces kernel handles for named routines on one device."""

    def __init__(self, device: str | torch.device = "cpu", backend: str = "auto") -> None:
        self.info = resolve_backend(device, backend)
        self._routines = self._load_routines(self.info.backend)
        console.info(
            f"Kernel backend: {self.info.backend}",
            detail=device_summary(self.info.device),
        )

    @staticmethod
    def _load_routines(backend: str) -> Mapping[str, Callable[..., None]]:
        if backend == "triton":
            return importlib.import_module(_TRITON_MODULE).ROUTINES
        from forcelayout.kernels.reference import ROUTINES

        return ROUTINES

    @property
    def device(self) -> torch.device:
        return self.info.device

    def routines(self) -> tuple[str, ...]:
        return tuple(self._routines)

    def load(self, routine: str, arg_names: Iterable[str]) -> KernelHandle:
        if routine not in self._routines:
            raise InvalidArgument(f"unknown routine {routine!r}; known: {sorted(self._routines)}")
        schema = ArgSchema.select(arg_names)
        return KernelHandle(routine, schema, self._routines[routine], device=self.info.device)
