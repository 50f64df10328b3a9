"""Driver settings loaded from a YAML file and the environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Optional, Type

from pydantic import BaseModel
import yaml

from virtbox.models.sandbox import KernelParam, ResourceConfig, SharedFS

DEFAULT_CONFIG_PATH = "config/virtbox.yaml"


class DriverSettings(BaseModel):
    logging_format: Literal["text", "json"] = "text"
    logging_level: str = "INFO"

    run_storage_path: str = "/run/vc/sbs"
    run_vm_storage_path: str = "/run/vc/vm"

    # Defaults for sandboxes created through the HTTP surface
    kernel_path: str = "/usr/share/kata-containers/vmlinuz.container"
    initrd_path: str = "/usr/share/kata-containers/kata-containers-initrd.img"
    hypervisor_path: str = "/usr/bin/qemu-system-x86_64"
    machine_type: str = "q35"
    default_vcpus: int = 1
    default_max_vcpus: int = 0
    default_memory_mib: int = 2048
    shared_fs: SharedFS = SharedFS.VIRTIO_FS
    kernel_params: Optional[dict[str, str]] = None

    def resource_config(self, **overrides: Any) -> ResourceConfig:
        params = {
            "kernel_path": self.kernel_path,
            "initrd_path": self.initrd_path,
            "hypervisor_path": self.hypervisor_path,
            "machine_type": self.machine_type,
            "num_vcpus": self.default_vcpus,
            "default_max_vcpus": self.default_max_vcpus,
            "memory_size": self.default_memory_mib,
            "shared_fs": self.shared_fs,
            "kernel_params": tuple(
                KernelParam(key, value)
                for key, value in (self.kernel_params or {}).items()
            ),
        }
        params.update({key: value for key, value in overrides.items() if value is not None})
        return ResourceConfig(**params)


def filter_value_from_env(cls: Type[BaseModel]) -> dict[str, Any]:
    values = {}
    for key in cls.model_fields.keys():
        value = os.getenv(key, os.getenv(key.upper(), None))
        if value is None:
            continue
        values[key] = value
    return values


def filter_value_from_yaml(yaml_string: str, cls: Type[BaseModel]) -> dict[str, Any]:
    data: dict | None = yaml.safe_load(yaml_string)
    if not isinstance(data, dict):
        return {}
    values = {}
    for key in cls.model_fields.keys():
        value = data.get(key, None)
        if value is None:
            continue
        values[key] = value
    return values


def load_settings(config_path: str | None = None) -> DriverSettings:
    path = Path(config_path or os.getenv("VIRTBOX_CONFIG_PATH", DEFAULT_CONFIG_PATH))
    yaml_string = ""
    if path.is_file():
        yaml_string = path.read_text(encoding="utf-8")

    values = {
        **filter_value_from_env(DriverSettings),
        **filter_value_from_yaml(yaml_string, DriverSettings),
    }
    return DriverSettings(**values)
