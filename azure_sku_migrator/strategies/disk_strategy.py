"""Conversion of unmanaged VM disks to managed disks"""

from typing import Any, Dict

from ..core.errors import UnsupportedScenario
from ..core.models import MigrationType, ResourceRecord, VerificationOutcome
from .base import BaseMigrationStrategy


class DiskConversionStrategy(BaseMigrationStrategy):
    """Converts a VM's blob-backed VHDs to managed disks.

    The provider deallocates the VM, converts every disk and restarts the VM if
    it was running. Conversion snapshots the source blobs, which is where the
    snapshot-limit retry applies.
    """

    def get_migration_type(self) -> MigrationType:
        return MigrationType.DISK_CONVERSION

    def validate(self, record: ResourceRecord) -> None:
        name = record.identifier.resource_name

        if record.get("virtual_machine_scale_set_id"):
            raise UnsupportedScenario(
                f"VM {name} belongs to a scale set; convert the scale set model instead"
            )

        if not record.get("os_disk_managed") and not record.get("os_disk_vhd_uri"):
            raise UnsupportedScenario(
                f"VM {name} reports neither a managed OS disk nor a VHD URI"
            )

        encrypted = [d.get("name") for d in record.get("data_disks", []) if d.get("encrypted")]
        if record.get("os_disk_encrypted") or encrypted:
            raise UnsupportedScenario(
                f"VM {name} has disks encrypted with Azure Disk Encryption; "
                f"decrypt before converting"
            )

    def _mutate(self, record: ResourceRecord) -> Dict[str, Any]:
        return self.client.replace_disk(record.identifier)

    def _check_post_condition(self, attributes: Dict[str, Any]) -> VerificationOutcome:
        unmanaged = [d.get("name") for d in attributes.get("data_disks", []) if not d.get("managed")]
        observed = {
            "os_disk_managed": bool(attributes.get("os_disk_managed")),
            "unmanaged_data_disks": unmanaged,
        }

        if not observed["os_disk_managed"]:
            return VerificationOutcome(
                passed=False, details="OS disk still has no managed-disk reference", observed=observed
            )
        if unmanaged:
            return VerificationOutcome(
                passed=False,
                details=f"Data disks still unmanaged: {', '.join(str(n) for n in unmanaged)}",
                observed=observed,
            )
        return VerificationOutcome(passed=True, details="All disks are managed", observed=observed)
