from dataclasses import replace
from pathlib import Path
import xml.etree.ElementTree as ET

import pytest

from virtbox.errors import ConfigurationError
from virtbox.models.sandbox import KernelParam, SandboxIdentity, SharedFS
from virtbox.providers.sandbox.descriptor import (
    DomainDescriptorBuilder,
    build_socket_path,
    kernel_cmdline,
)

IDENTITY = SandboxIdentity(
    sandbox_id="sbx1",
    domain_uuid="0f4c2a3e-1b2c-4d5e-8f90-a1b2c3d4e5f6",
    root_path=Path("/run/vc/libvirt/0f4c2a3e1b2c4d5e8f90a1b2c3d4e5f6"),
)
CONSOLE = "/run/vc/vm/sbx1/console.sock"

BASELINE = (
    "quiet tsc=reliable no_timer_check rcupdate.rcu_expedited=1 "
    "i8042.direct=1 i8042.dumbkbd=1 i8042.nopnp=1 i8042.noaux=1 "
    "noreplace-smp reboot=k console=hvc0 console=hvc1 iommu=off "
    "cryptomgr.notests net.ifnames=0 pci=lastbus=0 panic=1"
)


def _build(config):
    return DomainDescriptorBuilder().build(IDENTITY, config.validated(), CONSOLE)


def test_shared_memory_scenario(resource_config):
    descriptor = _build(resource_config)

    assert descriptor.vcpu.current == 2
    assert descriptor.vcpu.value == 4
    assert descriptor.memory.value == 2048
    assert descriptor.memory.unit == "MiB"
    assert descriptor.memory_access_mode == "shared"
    assert len(descriptor.cpu.numa_cells) == 1
    cell = descriptor.cpu.numa_cells[0]
    assert cell.id == 0
    assert cell.cpus == "0-3"
    assert cell.memory == 2048
    assert cell.mem_access == "shared"


@pytest.mark.parametrize("max_vcpus", [1, 2, 7, 16])
def test_numa_cell_tracks_top_level_values(resource_config, max_vcpus):
    config = replace(resource_config, num_vcpus=1, default_max_vcpus=max_vcpus)
    descriptor = _build(config)

    cell = descriptor.cpu.numa_cells[0]
    assert cell.cpus == f"0-{max_vcpus - 1}"
    assert cell.memory == descriptor.memory.value


def test_no_shared_memory_without_virtio_fs(resource_config):
    descriptor = _build(replace(resource_config, shared_fs=SharedFS.VIRTIO_9P))

    assert descriptor.memory_access_mode is None
    assert descriptor.cpu.numa_cells == []
    assert "memoryBacking" not in descriptor.to_xml()


def test_cmdline_order(resource_config):
    config = replace(
        resource_config,
        kernel_params=(KernelParam("console", "ttyS0"), KernelParam("debug")),
    ).validated()

    assert kernel_cmdline(config) == (
        f"{BASELINE} nr_cpus=4 agent.use_vsock=false console=ttyS0 debug"
    )


def test_cmdline_keeps_duplicate_keys(resource_config):
    config = replace(
        resource_config, kernel_params=(KernelParam("panic", "0"),)
    ).validated()

    cmdline = kernel_cmdline(config)
    assert cmdline.count("panic=") == 2
    assert cmdline.endswith("panic=0")


def test_fixed_blocks(resource_config):
    descriptor = _build(resource_config)

    assert descriptor.type == "kvm"
    assert descriptor.name == "sandbox"
    assert descriptor.uuid == IDENTITY.domain_uuid
    assert descriptor.features.ioapic_driver == "kvm"
    assert descriptor.features.pmu_state == "off"
    assert descriptor.cpu.mode == "host-passthrough"
    assert [(t.name, t.tick_policy) for t in descriptor.timers] == [("pit", "discard")]
    assert descriptor.devices.consoles[0].source.path == CONSOLE
    assert descriptor.devices.consoles[0].source.mode == "bind"
    assert descriptor.devices.channels == []
    assert descriptor.devices.filesystems == []
    assert descriptor.devices.interfaces == []


def test_xml_document(resource_config):
    root = ET.fromstring(_build(resource_config).to_xml())

    assert root.tag == "domain"
    assert root.get("type") == "kvm"
    assert root.findtext("name") == "sandbox"
    assert root.findtext("uuid") == IDENTITY.domain_uuid
    assert root.find("memory").get("unit") == "MiB"
    assert root.findtext("memory") == "2048"
    assert root.find("vcpu").get("current") == "2"
    assert root.findtext("vcpu") == "4"
    assert root.find("memoryBacking/access").get("mode") == "shared"
    assert root.find("os/type").get("machine") == "q35"
    assert root.findtext("os/type") == "hvm"
    assert root.findtext("os/kernel") == "/opt/kata/vmlinuz"
    assert root.findtext("os/initrd") == "/opt/kata/initrd.img"
    assert root.findtext("os/cmdline").startswith("quiet tsc=reliable")
    assert root.find("features/acpi") is not None
    assert root.find("features/apic") is not None
    assert root.find("features/ioapic").get("driver") == "kvm"
    assert root.find("features/pmu").get("state") == "off"
    cell = root.find("cpu/numa/cell")
    assert cell.attrib == {
        "id": "0",
        "cpus": "0-3",
        "memory": "2048",
        "unit": "MiB",
        "memAccess": "shared",
    }
    assert root.find("clock/timer").attrib == {"name": "pit", "tickpolicy": "discard"}
    assert root.findtext("devices/emulator") == "/usr/bin/qemu-system-x86_64"
    assert root.find("devices/console/source").get("path") == CONSOLE
    assert root.find("devices/console/target").get("type") == "virtio"
    assert root.find("devices/controller").attrib == {"type": "usb", "model": "none"}
    assert root.find("devices/memballoon").get("model") == "none"
    assert root.findtext("devices/rng/backend") == "/dev/urandom"


def test_socket_path_is_joined():
    assert build_socket_path("/run/vc/vm", "sbx1", "console.sock") == CONSOLE


def test_socket_path_too_long_is_rejected():
    with pytest.raises(ConfigurationError):
        build_socket_path("/run/" + "x" * 120, "console.sock")


def test_socket_path_empty_is_rejected():
    with pytest.raises(ConfigurationError):
        build_socket_path("")
