"""Compute kernels for the Gauss-Seidel layout relaxation."""
from __future__ import annotations

from .args import ArgSchema, ArgType, RELAXATION_ARGS
from .handle import Completion, KernelHandle
from .loader import BackendInfo, ProgramLoader, resolve_backend

__all__ = [
    "ArgSchema",
    "ArgType",
    "BackendInfo",
    "Completion",
    "KernelHandle",
    "ProgramLoader",
    "RELAXATION_ARGS",
    "resolve_backend",
]
