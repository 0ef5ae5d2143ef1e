"""Tests for kernel argument schemas, handles and the program loader."""

from __future__ import annotations

import pytest
import torch

from forcelayout.errors import DeviceUnavailable, DispatchError, InvalidArgument, TypeMismatch
from forcelayout.kernels import ArgSchema, ArgType, KernelHandle, ProgramLoader
from forcelayout.kernels.loader import resolve_backend


def _recording_handle(names=("num_points", "charge", "input_points")):
    calls = []

    def program(global_size, **args):
        calls.append((global_size, dict(args)))

    return KernelHandle("recorder", ArgSchema.select(names), program), calls


def test_schema_select_rejects_unknown_names() -> None:
    with pytest.raises(InvalidArgument):
        ArgSchema.select(["num_points", "not_an_arg"])


def test_schema_is_ordered_and_typed() -> None:
    schema = ArgSchema.select(["charge", "num_points", "springs", "tile_points"])
    assert list(schema) == ["charge", "num_points", "springs", "tile_points"]
    assert schema.type_of("charge") is ArgType.FLOAT
    assert schema.type_of("num_points") is ArgType.UINT
    assert schema.type_of("springs") is ArgType.BUFFER
    assert schema.type_of("tile_points") is ArgType.LOCAL
    assert "charge" in schema
    assert "gravity" not in schema


def test_configure_unknown_argument_fails() -> None:
    handle, _ = _recording_handle()
    with pytest.raises(InvalidArgument):
        handle.configure(gravity=0.5)


@pytest.mark.parametrize(
    "args",
    [
        {"num_points": 1.5},
        {"num_points": -1},
        {"num_points": True},
        {"charge": "strong"},
        {"charge": False},
        {"input_points": [0.0, 1.0]},
    ],
)
def test_configure_type_mismatch(args) -> None:
    handle, _ = _recording_handle()
    with pytest.raises(TypeMismatch):
        handle.configure(**args)


def test_local_size_must_be_positive() -> None:
    handle = KernelHandle("local", ArgSchema.select(["tile_points"]), lambda n, **a: None)
    with pytest.raises(TypeMismatch):
        handle.configure(tile_points=0)
    handle.configure(tile_points=256)
    assert handle.bound["tile_points"] == 256


def test_float_accepts_int_and_normalises() -> None:
    handle, _ = _recording_handle()
    handle.configure(charge=2)
    assert handle.bound["charge"] == 2.0
    assert isinstance(handle.bound["charge"], float)


def test_dispatch_with_incomplete_binding_fails() -> None:
    handle, calls = _recording_handle()
    handle.configure(num_points=3)
    with pytest.raises(DispatchError, match="incomplete"):
        handle.dispatch(3)
    assert calls == []


def test_bindings_persist_across_dispatches() -> None:
    handle, calls = _recording_handle()
    buf = torch.zeros(4, 2)
    handle.configure(num_points=4, charge=-1.0, input_points=buf)
    handle.dispatch(4, [buf]).wait()
    handle.configure(charge=0.25)
    handle.dispatch(4, [buf]).wait()

    assert len(calls) == 2
    assert calls[0][1]["charge"] == -1.0
    assert calls[1][1]["charge"] == 0.25
    assert calls[1][1]["num_points"] == 4
    assert calls[1][1]["input_points"] is buf
    assert handle.dispatch_count == 2
    assert handle.last_resources == (buf,)


def test_dispatch_rejects_out_of_range_sizes() -> None:
    handle, _ = _recording_handle()
    handle.configure(num_points=1, charge=0.0, input_points=torch.zeros(1, 2))
    with pytest.raises(DispatchError):
        handle.dispatch(-1)
    handle.max_global_size = 8
    with pytest.raises(DispatchError):
        handle.dispatch(9)


def test_program_failure_maps_to_dispatch_error() -> None:
    def program(global_size, **args):
        raise RuntimeError("kernel blew up")

    handle = KernelHandle("broken", ArgSchema.select(["num_points"]), program)
    handle.configure(num_points=1)
    with pytest.raises(DispatchError, match="kernel blew up"):
        handle.dispatch(1)
    assert handle.dispatch_count == 1


@pytest.mark.parametrize("exc", [TypeError("kernel compile failed"), KeyError("missing_arg")])
def test_any_program_exception_maps_to_dispatch_error(exc) -> None:
    def program(global_size, **args):
        raise exc

    handle = KernelHandle("broken", ArgSchema.select(["num_points"]), program)
    handle.configure(num_points=1)
    with pytest.raises(DispatchError) as info:
        handle.dispatch(1)
    assert info.value.__cause__ is exc


def test_device_loss_maps_to_device_unavailable() -> None:
    def program(global_size, **args):
        raise RuntimeError("CUDA error: device-side assert triggered")

    handle = KernelHandle("lost", ArgSchema.select(["num_points"]), program)
    handle.configure(num_points=1)
    with pytest.raises(DeviceUnavailable):
        handle.dispatch(1)


def test_loader_handles_have_independent_bindings() -> None:
    loader = ProgramLoader("cpu", backend="torch")
    a = loader.load("gauss_seidel_springs", ["edge_strength0", "step_number"])
    b = loader.load("gauss_seidel_springs", ["edge_strength0", "step_number"])
    a.configure(edge_strength0=3.0)
    assert "edge_strength0" not in b.bound
    assert a.schema == b.schema
    assert a.schema is not b.schema


def test_loader_rejects_unknown_routine() -> None:
    loader = ProgramLoader("cpu", backend="torch")
    with pytest.raises(InvalidArgument):
        loader.load("gauss_seidel_everything", ["num_points"])


def test_triton_backend_requires_cuda_device() -> None:
    with pytest.raises(DeviceUnavailable):
        resolve_backend("cpu", "triton")


def test_auto_backend_on_cpu_is_torch() -> None:
    assert resolve_backend("cpu", "auto").backend == "torch"
