"""Device buffer registry: ownership table and double-buffer discipline.

Physical tensors are stored under stable physical ids. Logical names (what
kernels and callers ask for) resolve through an ownership table. Swapping a
double-buffered slot replaces the table with a renamed copy; no tensor object
is mutated and no data moves.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

import torch


@dataclass(frozen=True)
class BufferInfo:
    name: str
    shape: tuple[int, ...]
    dtype: torch.dtype
    double_buffered: bool
    version: int


class DeviceBufferRegistry:
    """Owns every device buffer of one layout session."""

    def __init__(self, device: str | torch.device = "cpu") -> None:
        self.device = torch.device(device)
        self._physical: dict[str, torch.Tensor] = {}
        # logical name -> physical id of the current buffer
        self._table: Mapping[str, str] = MappingProxyType({})
        # logical name -> physical id of the staging buffer (double-buffered slots only)
        self._staging: Mapping[str, str] = MappingProxyType({})
        self._versions: dict[str, int] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._table

    def __getitem__(self, name: str) -> torch.Tensor:
        try:
            return self._physical[self._table[name]]
        except KeyError:
            raise KeyError(f"no buffer named {name!r}") from None

    def names(self) -> tuple[str, ...]:
        return tuple(self._table)

    def allocate(self, name: str, tensor: torch.Tensor, *, double_buffered: bool = False) -> torch.Tensor:
        """Take ownership of `tensor` (moved to the registry device) under `name`."""
        if name in self._table:
            raise ValueError(f"buffer {name!r} already allocated")
        current = tensor.detach().to(self.device, copy=True).contiguous()
        cur_id = f"{name}#0"
        self._physical[cur_id] = current
        self._table = MappingProxyType({**self._table, name: cur_id})
        if double_buffered:
            stage_id = f"{name}#1"
            self._physical[stage_id] = current.clone()
            self._staging = MappingProxyType({**self._staging, name: stage_id})
        self._versions[name] = 0
        return current

    def staging(self, name: str) -> torch.Tensor:
        if name not in self._staging:
            raise KeyError(f"buffer {name!r} is not double-buffered")
        return self._physical[self._staging[name]]

    def is_double_buffered(self, name: str) -> bool:
        return name in self._staging

    def tick_buffers(self, names: Iterable[str]) -> None:
        """Publish new contents for `names`.

        Double-buffered slots swap current and staging; every named slot gets
        its version bumped.
        """
        names = list(names)
        for name in names:
            if name not in self._table:
                raise KeyError(f"no buffer named {name!r}")
        table = dict(self._table)
        staging = dict(self._staging)
        for name in names:
            if name in staging:
                table[name], staging[name] = staging[name], table[name]
            self._versions[name] += 1
        self._table = MappingProxyType(table)
        self._staging = MappingProxyType(staging)

    def copy_into(self, src: str, dst: str) -> None:
        """Device-to-device copy of the current `src` buffer into the current `dst` buffer."""
        a, b = self[src], self[dst]
        if a.shape != b.shape:
            raise ValueError(f"cannot copy {src!r} {tuple(a.shape)} into {dst!r} {tuple(b.shape)}")
        b.copy_(a)
        self._versions[dst] += 1

    def names_of(self, tensor: torch.Tensor) -> tuple[str, ...]:
        """Logical names whose current buffer is `tensor`."""
        return tuple(name for name, pid in self._table.items() if self._physical[pid] is tensor)

    def version(self, name: str) -> int:
        return self._versions[name]

    def versions(self) -> dict[str, int]:
        return dict(self._versions)

    def info(self, name: str) -> BufferInfo:
        t = self[name]
        return BufferInfo(
            name=name,
            shape=tuple(t.shape),
            dtype=t.dtype,
            double_buffered=self.is_double_buffered(name),
            version=self._versions[name],
        )
