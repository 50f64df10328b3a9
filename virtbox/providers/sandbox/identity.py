"""Sandbox identity recovery and host filesystem preparation.

The ``libvirt`` symlink inside a sandbox's VM runtime directory is the only
durable record of which embedded libvirt root (and therefore which domain
UUID) belongs to the sandbox. Resolving an identity either follows that link
or mints a fresh UUID and derives a new root from it.
"""

from __future__ import annotations

import os
from pathlib import Path
import uuid

from virtbox.log import get_logger
from virtbox.models.sandbox import SandboxIdentity
from virtbox.providers.store import PathStore

ROOT_LINK_NAME = "libvirt"
QEMU_CONF_CONTENTS = 'stdio_handler = "file"\n'
_DIR_MODE = 0o755


def remove_dashes(value: str) -> str:
    return "".join(
        (value[0:8], value[9:13], value[14:18], value[19:23], value[24:])
    )


def add_dashes(value: str) -> str:
    return "-".join(
        (value[0:8], value[8:12], value[12:16], value[16:20], value[20:])
    )


class IdentityResolver:
    def __init__(self, store: PathStore) -> None:
        self._store = store
        self._log = get_logger(subsystem="libvirt")

    def root_link(self, sandbox_id: str) -> Path:
        return self._store.run_vm_storage_path / sandbox_id / ROOT_LINK_NAME

    def resolve(self, sandbox_id: str) -> SandboxIdentity:
        log = self._log.bind(func="resolve", sandbox_id=sandbox_id)
        link = self.root_link(sandbox_id)
        try:
            root_path = Path(os.readlink(link))
        except FileNotFoundError:
            domain_uuid = str(uuid.uuid4())
            root_path = (
                self._store.run_vm_storage_path.parent
                / ROOT_LINK_NAME
                / remove_dashes(domain_uuid)
            )
            log.debug("generated identity", domain_uuid=domain_uuid, root=str(root_path))
        else:
            domain_uuid = add_dashes(root_path.name)
            log.debug("recovered identity", domain_uuid=domain_uuid, root=str(root_path))
        return SandboxIdentity(
            sandbox_id=sandbox_id, domain_uuid=domain_uuid, root_path=root_path
        )

    def prepare_host_filesystem(self, identity: SandboxIdentity) -> None:
        """Create the sandbox's runtime directories, root link and qemu.conf.

        Directory creation is idempotent and the link is created last, so a
        setup interrupted before the link exists is simply redone on the next
        attempt.
        """
        log = self._log.bind(func="prepare_host_filesystem")
        conf_dir = identity.root_path / "etc"
        paths = [
            self._store.run_storage_path / identity.sandbox_id,
            self._store.run_vm_storage_path / identity.sandbox_id,
            identity.root_path,
            conf_dir,
        ]
        for path in paths:
            path.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
            log.debug("host directory created", path=str(path))

        link = self.root_link(identity.sandbox_id)
        if not self._links_to(link, identity.root_path):
            os.symlink(identity.root_path, link)
            log.debug("symlink created", target=str(identity.root_path), link=str(link))

        (conf_dir / "qemu.conf").write_text(QEMU_CONF_CONTENTS, encoding="utf-8")

    @staticmethod
    def _links_to(link: Path, target: Path) -> bool:
        try:
            return Path(os.readlink(link)) == target
        except FileNotFoundError:
            return False
