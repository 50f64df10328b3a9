"""Hypervisor driver interface."""

from __future__ import annotations

from typing import Protocol, Sequence

from virtbox.models.devices import ConsoleChannel, Device
from virtbox.models.sandbox import (
    Capabilities,
    HypervisorState,
    ResourceConfig,
    VcpuAdjustment,
)


class HypervisorDriver(Protocol):
    def create_sandbox(self, sandbox_id: str, config: ResourceConfig) -> None:
        ...

    def start_sandbox(self) -> None:
        ...

    def stop_sandbox(self) -> None:
        ...

    def pause_sandbox(self) -> None:
        ...

    def resume_sandbox(self) -> None:
        ...

    def save_sandbox(self) -> None:
        ...

    def add_device(self, device: Device) -> None:
        ...

    def hotplug_add_device(self, device: Device) -> Device:
        ...

    def hotplug_remove_device(self, device: Device) -> Device:
        ...

    def resize_memory(
        self, requested_mib: int, block_size_mib: int, probe: bool = False
    ) -> int:
        ...

    def resize_vcpus(self, requested: int) -> VcpuAdjustment:
        ...

    def get_sandbox_console(self, sandbox_id: str) -> str:
        ...

    def generate_socket(self, sandbox_id: str, use_vsock: bool = False) -> ConsoleChannel:
        ...

    def capabilities(self) -> Capabilities:
        ...

    def hypervisor_config(self) -> ResourceConfig:
        ...

    def disconnect(self) -> None:
        ...

    def get_thread_ids(self) -> dict[int, int]:
        ...

    def get_pids(self) -> Sequence[int]:
        ...

    def cleanup(self) -> None:
        ...

    def check(self) -> None:
        ...

    def to_grpc(self) -> bytes:
        ...

    def from_grpc(self, config: ResourceConfig, payload: bytes) -> None:
        ...

    def save(self) -> HypervisorState:
        ...

    def load(self, state: HypervisorState) -> None:
        ...
