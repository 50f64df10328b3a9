"""Path lookup contract for per-sandbox runtime storage."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class PathStore(Protocol):
    @property
    def run_storage_path(self) -> Path:
        ...

    @property
    def run_vm_storage_path(self) -> Path:
        ...


class LocalPathStore(PathStore):
    def __init__(self, run_storage_path: str | Path, run_vm_storage_path: str | Path) -> None:
        self._run_storage_path = Path(run_storage_path)
        self._run_vm_storage_path = Path(run_vm_storage_path)

    @property
    def run_storage_path(self) -> Path:
        return self._run_storage_path

    @property
    def run_vm_storage_path(self) -> Path:
        return self._run_vm_storage_path

