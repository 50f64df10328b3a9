"""In-memory libvirt domain descriptor and its XML rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import xml.etree.ElementTree as ET


@dataclass
class DomainVCPU:
    current: int
    value: int


@dataclass
class DomainMemory:
    value: int
    unit: str = "MiB"


@dataclass
class DomainOS:
    machine: str
    kernel: str
    initrd: str
    cmdline: str
    type: str = "hvm"


@dataclass
class DomainFeatures:
    acpi: bool = True
    apic: bool = True
    ioapic_driver: str = "kvm"
    pmu_state: str = "off"


@dataclass
class NumaCell:
    id: int
    cpus: str
    memory: int
    unit: str = "MiB"
    mem_access: Optional[str] = None


@dataclass
class DomainCPU:
    mode: str = "host-passthrough"
    numa_cells: list[NumaCell] = field(default_factory=list)


@dataclass
class DomainTimer:
    name: str
    tick_policy: str


@dataclass
class UnixChardev:
    path: str
    mode: str = "bind"


@dataclass
class DomainConsole:
    source: UnixChardev
    target_type: str = "virtio"


@dataclass
class DomainChannel:
    source: UnixChardev
    target_name: str
    target_type: str = "virtio"


@dataclass
class DomainController:
    type: str
    model: str


@dataclass
class DomainRNG:
    backend_device: str = "/dev/urandom"
    model: str = "virtio"


@dataclass
class DomainFilesystem:
    source_dir: str
    target_dir: str
    driver_type: Optional[str] = None


@dataclass
class DomainInterface:
    target_dev: str
    mac_address: str
    managed: str = "no"
    model: str = "virtio"


@dataclass
class DomainDevices:
    emulator: str
    consoles: list[DomainConsole] = field(default_factory=list)
    controllers: list[DomainController] = field(default_factory=list)
    memballoon_model: str = "none"
    rngs: list[DomainRNG] = field(default_factory=list)
    channels: list[DomainChannel] = field(default_factory=list)
    filesystems: list[DomainFilesystem] = field(default_factory=list)
    interfaces: list[DomainInterface] = field(default_factory=list)


@dataclass
class DomainDescriptor:
    uuid: str
    name: str
    vcpu: DomainVCPU
    memory: DomainMemory
    os: DomainOS
    devices: DomainDevices
    features: DomainFeatures = field(default_factory=DomainFeatures)
    cpu: DomainCPU = field(default_factory=DomainCPU)
    timers: list[DomainTimer] = field(default_factory=list)
    memory_access_mode: Optional[str] = None
    type: str = "kvm"

    def to_xml(self) -> str:
        """Render the descriptor as a libvirt domain XML document."""
        root = ET.Element("domain", type=self.type)
        ET.SubElement(root, "name").text = self.name
        ET.SubElement(root, "uuid").text = self.uuid
        ET.SubElement(root, "memory", unit=self.memory.unit).text = str(
            self.memory.value
        )
        if self.memory_access_mode is not None:
            backing = ET.SubElement(root, "memoryBacking")
            ET.SubElement(backing, "access", mode=self.memory_access_mode)
        ET.SubElement(root, "vcpu", current=str(self.vcpu.current)).text = str(
            self.vcpu.value
        )

        os_el = ET.SubElement(root, "os")
        ET.SubElement(os_el, "type", machine=self.os.machine).text = self.os.type
        ET.SubElement(os_el, "kernel").text = self.os.kernel
        ET.SubElement(os_el, "initrd").text = self.os.initrd
        ET.SubElement(os_el, "cmdline").text = self.os.cmdline

        features = ET.SubElement(root, "features")
        if self.features.acpi:
            ET.SubElement(features, "acpi")
        if self.features.apic:
            ET.SubElement(features, "apic")
        ET.SubElement(features, "pmu", state=self.features.pmu_state)
        ET.SubElement(features, "ioapic", driver=self.features.ioapic_driver)

        cpu = ET.SubElement(root, "cpu", mode=self.cpu.mode)
        if self.cpu.numa_cells:
            numa = ET.SubElement(cpu, "numa")
            for cell in self.cpu.numa_cells:
                attrs = {
                    "id": str(cell.id),
                    "cpus": cell.cpus,
                    "memory": str(cell.memory),
                    "unit": cell.unit,
                }
                if cell.mem_access:
                    attrs["memAccess"] = cell.mem_access
                ET.SubElement(numa, "cell", attrs)

        clock = ET.SubElement(root, "clock")
        for timer in self.timers:
            ET.SubElement(clock, "timer", name=timer.name, tickpolicy=timer.tick_policy)

        root.append(self._devices_element())
        return ET.tostring(root, encoding="unicode")

    def _devices_element(self) -> ET.Element:
        devices = ET.Element("devices")
        ET.SubElement(devices, "emulator").text = self.devices.emulator
        for controller in self.devices.controllers:
            ET.SubElement(
                devices, "controller", type=controller.type, model=controller.model
            )
        for fs in self.devices.filesystems:
            fs_el = ET.SubElement(devices, "filesystem", type="mount")
            if fs.driver_type:
                ET.SubElement(fs_el, "driver", type=fs.driver_type)
            ET.SubElement(fs_el, "source", dir=fs.source_dir)
            ET.SubElement(fs_el, "target", dir=fs.target_dir)
        for iface in self.devices.interfaces:
            iface_el = ET.SubElement(devices, "interface", type="ethernet")
            ET.SubElement(iface_el, "mac", address=iface.mac_address)
            ET.SubElement(iface_el, "target", dev=iface.target_dev, managed=iface.managed)
            ET.SubElement(iface_el, "model", type=iface.model)
        for console in self.devices.consoles:
            console_el = ET.SubElement(devices, "console", type="unix")
            ET.SubElement(
                console_el, "source", mode=console.source.mode, path=console.source.path
            )
            ET.SubElement(console_el, "target", type=console.target_type)
        for channel in self.devices.channels:
            channel_el = ET.SubElement(devices, "channel", type="unix")
            ET.SubElement(
                channel_el, "source", mode=channel.source.mode, path=channel.source.path
            )
            ET.SubElement(
                channel_el, "target", type=channel.target_type, name=channel.target_name
            )
        ET.SubElement(devices, "memballoon", model=self.devices.memballoon_model)
        for rng in self.devices.rngs:
            rng_el = ET.SubElement(devices, "rng", model=rng.model)
            ET.SubElement(rng_el, "backend", model="random").text = rng.backend_device
        return devices
