"""Tests for the device buffer registry."""

from __future__ import annotations

import pytest
import torch

from forcelayout.buffers import DeviceBufferRegistry


def test_registry_owns_a_private_copy() -> None:
    reg = DeviceBufferRegistry("cpu")
    src = torch.arange(6, dtype=torch.float32).reshape(3, 2)
    reg.allocate("cur_points", src)
    src.zero_()
    assert reg["cur_points"].sum().item() == pytest.approx(15.0)


def test_double_buffer_swap_is_a_rename() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("springs_pos", torch.zeros(4, 2, 2), double_buffered=True)
    current = reg["springs_pos"]
    staging = reg.staging("springs_pos")
    assert current is not staging

    staging.fill_(7.0)
    reg.tick_buffers(["springs_pos"])

    assert reg["springs_pos"] is staging
    assert reg.staging("springs_pos") is current
    assert torch.all(reg["springs_pos"] == 7.0)
    assert reg.version("springs_pos") == 1


def test_tick_on_single_buffer_bumps_version_only() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("next_points", torch.zeros(3, 2))
    before = reg["next_points"]
    reg.tick_buffers(["next_points"])
    reg.tick_buffers(["next_points"])
    assert reg["next_points"] is before
    assert reg.version("next_points") == 2


def test_tick_unknown_buffer_fails_without_partial_update() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("cur_points", torch.zeros(3, 2))
    with pytest.raises(KeyError):
        reg.tick_buffers(["cur_points", "missing"])
    assert reg.version("cur_points") == 0


def test_copy_into_materialises_data() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("cur_points", torch.zeros(3, 2))
    reg.allocate("next_points", torch.ones(3, 2))
    cur = reg["cur_points"]
    reg.copy_into("next_points", "cur_points")
    assert reg["cur_points"] is cur
    assert torch.equal(reg["cur_points"], reg["next_points"])
    assert reg["cur_points"] is not reg["next_points"]
    assert reg.version("cur_points") == 1
    assert reg.version("next_points") == 0


def test_copy_into_shape_mismatch() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("a", torch.zeros(3, 2))
    reg.allocate("b", torch.zeros(4, 2))
    with pytest.raises(ValueError):
        reg.copy_into("a", "b")


def test_allocation_errors() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("a", torch.zeros(2))
    with pytest.raises(ValueError):
        reg.allocate("a", torch.zeros(2))
    with pytest.raises(KeyError):
        reg.staging("a")
    with pytest.raises(KeyError):
        reg["b"]


def test_names_of_resolves_current_owner() -> None:
    reg = DeviceBufferRegistry("cpu")
    reg.allocate("springs_pos", torch.zeros(2, 2, 2), double_buffered=True)
    staging = reg.staging("springs_pos")
    assert reg.names_of(staging) == ()
    reg.tick_buffers(["springs_pos"])
    assert reg.names_of(staging) == ("springs_pos",)
    info = reg.info("springs_pos")
    assert info.double_buffered
    assert info.shape == (2, 2, 2)
