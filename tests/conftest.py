"""Shared fixtures: an in-memory provider and recording collaborators"""

import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

from azure_sku_migrator.core.errors import BackupFailure, ProviderError, ProviderErrorCode
from azure_sku_migrator.core.identifier import parse_resource_id
from azure_sku_migrator.core.interfaces import IBackupRecorder, IConfirmationPrompt, IProviderClient
from azure_sku_migrator.core.models import (
    BackupReference,
    MigrationConfiguration,
    Relation,
    ResourceIdentifier,
    ResourceRecord,
    utc_now,
)

SUBSCRIPTION = "11111111-2222-3333-4444-555555555555"
RESOURCE_GROUP = "rg-legacy"


def resource_path(provider: str, resource_type: str, name: str, resource_group: str = RESOURCE_GROUP) -> str:
    return (
        f"/subscriptions/{SUBSCRIPTION}/resourceGroups/{resource_group}"
        f"/providers/{provider}/{resource_type}/{name}"
    )


def vm_path(name: str, **kwargs) -> str:
    return resource_path("Microsoft.Compute", "virtualMachines", name, **kwargs)


def avset_path(name: str, **kwargs) -> str:
    return resource_path("Microsoft.Compute", "availabilitySets", name, **kwargs)


def lb_path(name: str, **kwargs) -> str:
    return resource_path("Microsoft.Network", "loadBalancers", name, **kwargs)


def pip_path(name: str, **kwargs) -> str:
    return resource_path("Microsoft.Network", "publicIPAddresses", name, **kwargs)


def ident(path: str) -> ResourceIdentifier:
    return parse_resource_id(path)


class FakeProviderClient(IProviderClient):
    """Dictionary-backed provider.

    Writes take effect immediately unless the resource id is in ``ignore_writes``.
    ``script_failure`` queues exceptions raised by the next calls of a method for a
    resource, in order.
    """

    def __init__(self):
        self.resources: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.ignore_writes = set()
        self._failures: Dict[tuple, List[Exception]] = defaultdict(list)

    # population helpers

    def add_vm(self, name: str, managed: bool = False, availability_set: Optional[str] = None, **extra) -> str:
        path = vm_path(name)
        self.resources[path] = {
            "os_disk_managed": managed,
            "os_disk_vhd_uri": None if managed else f"https://legacy.blob.core.windows.net/vhds/{name}.vhd",
            "os_disk_encrypted": False,
            "data_disks": [],
            "availability_set_id": availability_set,
            "virtual_machine_scale_set_id": None,
            "power_state": "running",
            **extra,
        }
        return path

    def add_avset(self, name: str, sku: str = "Classic", fault_domains: int = 2) -> str:
        path = avset_path(name)
        self.resources[path] = {"sku": sku, "platform_fault_domain_count": fault_domains}
        return path

    def add_lb(self, name: str, sku: str = "Basic", frontend_pips: Optional[List[str]] = None, **extra) -> str:
        path = lb_path(name)
        self.resources[path] = {
            "sku": sku,
            "frontend_ip_configurations": [
                {"name": f"frontend-{i}", "public_ip_address_id": pip, "ip_version": "IPv4"}
                for i, pip in enumerate(frontend_pips or [])
            ],
            "backend_pools": [{"name": "backend", "aks_managed": False}],
            **extra,
        }
        return path

    def add_pip(self, name: str, sku: str = "Basic", **extra) -> str:
        path = pip_path(name)
        self.resources[path] = {
            "sku": sku,
            "public_ip_allocation_method": "Dynamic",
            "ip_version": "IPv4",
            "ip_configuration_id": None,
            **extra,
        }
        return path

    def script_failure(self, method: str, path: str, *errors: Exception) -> None:
        self._failures[(method, path)].extend(errors)

    def calls_for(self, method: str) -> List[str]:
        return [call[1] for call in self.calls if call[0] == method]

    @property
    def write_calls(self) -> List[tuple]:
        writes = ("apply_sku_change", "replace_disk", "create_replacement_resource")
        return [call for call in self.calls if call[0] in writes]

    # IProviderClient

    def fetch_resource(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        path = self._enter("fetch_resource", identifier)
        return copy.deepcopy(self._get(identifier, path))

    def fetch_associated(self, identifier: ResourceIdentifier, relation: Relation) -> List[Dict[str, Any]]:
        path = self._enter("fetch_associated", identifier, relation)
        if relation == Relation.FRONTEND_PUBLIC_IPS:
            frontends = self._get(identifier, path).get("frontend_ip_configurations", [])
            return [
                {"id": f["public_ip_address_id"], "sku": self.resources.get(f["public_ip_address_id"], {}).get("sku")}
                for f in frontends if f.get("public_ip_address_id")
            ]

        referencing = []
        for other_path, attributes in self.resources.items():
            if "/loadBalancers/" not in other_path:
                continue
            pips = [f.get("public_ip_address_id") for f in attributes.get("frontend_ip_configurations", [])]
            if path in pips:
                referencing.append({"id": other_path, "sku": attributes["sku"]})
        return referencing

    def apply_sku_change(self, identifier: ResourceIdentifier, sku: str) -> Dict[str, Any]:
        path = self._enter("apply_sku_change", identifier, sku)
        attributes = self._get(identifier, path)
        if path not in self.ignore_writes:
            attributes["sku"] = sku
            if "public_ip_allocation_method" in attributes:
                attributes["public_ip_allocation_method"] = "Static"
        return copy.deepcopy(attributes)

    def replace_disk(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        path = self._enter("replace_disk", identifier)
        attributes = self._get(identifier, path)
        if path not in self.ignore_writes:
            attributes["os_disk_managed"] = True
            attributes["os_disk_vhd_uri"] = None
            for disk in attributes.get("data_disks", []):
                disk["managed"] = True
        return copy.deepcopy(attributes)

    def create_replacement_resource(self, identifier: ResourceIdentifier, overrides: Dict[str, Any]) -> Dict[str, Any]:
        path = self._enter("create_replacement_resource", identifier, dict(overrides))
        attributes = self._get(identifier, path)
        if path not in self.ignore_writes:
            attributes.update(overrides)
        return copy.deepcopy(attributes)

    def _enter(self, method: str, identifier: ResourceIdentifier, *args) -> str:
        path = identifier.resource_id
        self.calls.append((method, path) + args)
        queued = self._failures.get((method, path))
        if queued:
            raise queued.pop(0)
        return path

    def _get(self, identifier: ResourceIdentifier, path: str) -> Dict[str, Any]:
        if path not in self.resources:
            raise ProviderError(ProviderErrorCode.NOT_FOUND, f"{identifier.resource_name} not found", path)
        return self.resources[path]


class RecordingBackupRecorder(IBackupRecorder):
    """Keeps snapshots in memory"""

    def __init__(self):
        self.snapshots: List[ResourceRecord] = []

    def snapshot(self, record: ResourceRecord) -> BackupReference:
        self.snapshots.append(record)
        return BackupReference(
            snapshot_id=f"snap-{len(self.snapshots)}",
            location=f"memory://{record.identifier.resource_name}",
            resource_id=record.identifier.resource_id,
            created_at=utc_now(),
        )

    @property
    def resource_ids(self) -> List[str]:
        return [record.identifier.resource_id for record in self.snapshots]


class FailingBackupRecorder(IBackupRecorder):

    def __init__(self):
        self.attempts = 0

    def snapshot(self, record: ResourceRecord) -> BackupReference:
        self.attempts += 1
        raise BackupFailure(record.identifier.resource_id, OSError("disk full"))


class ScriptedConfirmation(IConfirmationPrompt):

    def __init__(self, answer: bool):
        self.answer = answer
        self.messages: List[str] = []

    def confirm(self, message: str) -> bool:
        self.messages.append(message)
        return self.answer


@pytest.fixture
def fake_client():
    return FakeProviderClient()


@pytest.fixture
def recorder():
    return RecordingBackupRecorder()


@pytest.fixture
def config():
    return MigrationConfiguration(pacing_delay_seconds=0, snapshot_retry_wait_seconds=0)
