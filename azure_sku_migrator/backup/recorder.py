"""Pre-migration snapshot recorder"""

import json
import os
import re
import uuid
from pathlib import Path
from typing import Union

from ..core.errors import BackupFailure
from ..core.interfaces import IBackupRecorder
from ..core.models import BackupReference, BackupSnapshot, ResourceRecord, utc_now
from ..utils.logger import setup_logger

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe(value: str) -> str:
    return _UNSAFE.sub("_", value) or "_"


class FileBackupRecorder(IBackupRecorder):
    """Append-only JSON snapshot store on the local filesystem.

    Layout: ``<backup_directory>/<subscription>/<resource_group>/<snapshot_id>.json``.
    Files are created exclusively and fsynced before the reference is returned.
    """

    def __init__(self, backup_directory: Union[str, Path]):
        self.logger = setup_logger(self.__class__.__name__)
        self.backup_directory = Path(backup_directory)

    def snapshot(self, record: ResourceRecord) -> BackupReference:
        identifier = record.identifier
        captured_at = utc_now()
        snapshot_id = "-".join([
            _safe(identifier.resource_type),
            _safe(identifier.resource_name),
            captured_at.strftime("%Y%m%dT%H%M%S%fZ"),
            uuid.uuid4().hex[:8],
        ])

        snapshot = BackupSnapshot(
            snapshot_id=snapshot_id,
            resource_id=identifier.resource_id,
            full_type=identifier.full_type,
            captured_at=captured_at,
            configuration={
                "fetched_at": record.fetched_at.isoformat(),
                "attributes": record.attributes,
            },
        )

        target_dir = self.backup_directory / _safe(identifier.subscription_id) / _safe(identifier.resource_group)
        path = target_dir / f"{snapshot_id}.json"
        created = False
        try:
            document = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True, default=str)
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "x", encoding="utf-8") as f:
                created = True
                f.write(document)
                f.flush()
                os.fsync(f.fileno())
        except Exception as e:
            self.logger.error(f"Failed to write backup for {identifier.resource_name}: {e}")
            if created:
                # No partial snapshot stays in the store
                path.unlink()
            raise BackupFailure(identifier.resource_id, e) from e

        self.logger.info(f"Backed up {identifier.resource_name} to {path}")
        return BackupReference(
            snapshot_id=snapshot_id,
            location=str(path),
            resource_id=identifier.resource_id,
            created_at=captured_at,
        )
