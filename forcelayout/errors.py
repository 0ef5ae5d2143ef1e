"""Error taxonomy for the layout engine.

Setup-time errors (`InvalidArgument`, `TypeMismatch`, `PartitionError`) are
programmer errors and abort session construction. `DispatchError` is scoped to
a single phase and is recovered from by the orchestrator. `DeviceUnavailable`
means the compute device is gone and always propagates to the caller.
"""

from __future__ import annotations


class ForceLayoutError(Exception):
    """Base class for all layout engine errors."""


class InvalidArgument(ForceLayoutError):
    """A kernel argument name is not part of the kernel's schema."""


class TypeMismatch(ForceLayoutError):
    """A kernel argument value does not match its declared type."""


class DispatchError(ForceLayoutError):
    """The device rejected or failed a dispatch."""


class DeviceUnavailable(ForceLayoutError):
    """The underlying compute device is lost or was never usable."""


class PartitionError(ForceLayoutError):
    """Edge sets or work-item partitions violate their invariants."""
