"""Typed argument schemas for compute kernels.

A schema is built once per kernel and never mutated afterwards; each kernel
handle keeps its own binding table keyed by it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

import torch

from forcelayout.errors import InvalidArgument, TypeMismatch


class ArgType(Enum):
    UINT = "uint"
    FLOAT = "float"
    LOCAL = "local"    # shared-memory size in bytes
    BUFFER = "buffer"  # opaque device tensor


# Every argument any relaxation routine understands.
RELAXATION_ARGS: Mapping[str, ArgType] = MappingProxyType({
    "num_points": ArgType.UINT,
    "tiles_per_iteration": ArgType.UINT,
    "edge_tags": ArgType.BUFFER,
    "input_positions": ArgType.BUFFER,
    "output_positions": ArgType.BUFFER,
    "tile_points": ArgType.LOCAL,
    "width": ArgType.FLOAT,
    "height": ArgType.FLOAT,
    "charge": ArgType.FLOAT,
    "gravity": ArgType.FLOAT,
    "rand_values": ArgType.BUFFER,
    "step_number": ArgType.UINT,
    "springs": ArgType.BUFFER,
    "work_list": ArgType.BUFFER,
    "input_points": ArgType.BUFFER,
    "output_points": ArgType.BUFFER,
    "edge_strength0": ArgType.FLOAT,
    "edge_distance0": ArgType.FLOAT,
    "edge_strength1": ArgType.FLOAT,
    "edge_distance1": ArgType.FLOAT,
    "spring_positions": ArgType.BUFFER,
})


@dataclass(frozen=True)
class ArgSchema:
    """Ordered, immutable mapping of argument name to `ArgType`."""

    entries: tuple[tuple[str, ArgType], ...]

    @classmethod
    def select(cls, names: Iterable[str], universe: Mapping[str, ArgType] = RELAXATION_ARGS) -> "ArgSchema":
        entries = []
        for name in names:
            if name not in universe:
                raise InvalidArgument(f"argument {name!r} is not a known kernel argument")
            entries.append((name, universe[name]))
        return cls(entries=tuple(entries))

    def __contains__(self, name: object) -> bool:
        return any(n == name for n, _ in self.entries)

    def __iter__(self) -> Iterator[str]:
        return (n for n, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def type_of(self, name: str) -> ArgType:
        for n, t in self.entries:
            if n == name:
                return t
        raise InvalidArgument(f"argument {name!r} is not part of this kernel's schema")

    def check(self, name: str, value: Any) -> Any:
        """Validate a value for `name` and return it in canonical form."""
        kind = self.type_of(name)
        if kind is ArgType.BUFFER:
            if not isinstance(value, torch.Tensor):
                raise TypeMismatch(f"{name}: expected a device buffer, got {type(value).__name__}")
            return value
        # bool is an int subclass, never a valid scalar here
        if isinstance(value, bool):
            raise TypeMismatch(f"{name}: expected {kind.value}, got bool")
        if kind is ArgType.FLOAT:
            if not isinstance(value, (int, float)):
                raise TypeMismatch(f"{name}: expected float, got {type(value).__name__}")
            return float(value)
        if not isinstance(value, int):
            raise TypeMismatch(f"{name}: expected {kind.value}, got {type(value).__name__}")
        if kind is ArgType.UINT and value < 0:
            raise TypeMismatch(f"{name}: expected uint, got negative value {value}")
        if kind is ArgType.LOCAL and value <= 0:
            raise TypeMismatch(f"{name}: local memory size must be positive, got {value}")
        return int(value)
