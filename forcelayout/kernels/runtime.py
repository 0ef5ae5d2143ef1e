"""Backend availability detection (Triton/CUDA).

The relaxation routines exist twice: a Triton version for CUDA devices and a
pure torch reference that runs anywhere torch does (CPU, CUDA, MPS).
"""

from __future__ import annotations

import importlib.util

import torch

__all__ = [
    "has_module",
    "triton_supported",
    "cuda_supported",
    "get_device",
]


def has_module(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError, AttributeError):
        return False


def triton_supported() -> bool:
    return bool(has_module("triton") and has_module("triton.language"))


def cuda_supported() -> bool:
    return bool(torch.cuda.is_available())


def get_device() -> str:
    """Get the device to use for the layout simulation."""
    if cuda_supported():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


def device_summary(device: torch.device) -> str:
    if device.type != "cuda":
        return str(device)
    idx = device.index if device.index is not None else int(torch.cuda.current_device())
    name = str(torch.cuda.get_device_name(idx))
    cap = ".".join(str(x) for x in torch.cuda.get_device_capability(idx))
    return f"{name} (sm_{cap})"
