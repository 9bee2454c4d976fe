import json
from pathlib import Path

import pytest

from azure_sku_migrator.backup.recorder import FileBackupRecorder
from azure_sku_migrator.core.errors import BackupFailure
from azure_sku_migrator.core.models import ResourceRecord

from conftest import RESOURCE_GROUP, SUBSCRIPTION, ident, pip_path


def make_record():
    return ResourceRecord(
        identifier=ident(pip_path("pip1")),
        attributes={"sku": "Basic", "raw": {"properties": {"ipAddress": "20.1.2.3"}}},
    )


def test_snapshot_writes_json_document(tmp_path):
    reference = FileBackupRecorder(tmp_path).snapshot(make_record())

    location = Path(reference.location)
    assert location.parent == tmp_path / SUBSCRIPTION / RESOURCE_GROUP
    assert location.name.startswith("publicIPAddresses-pip1-")

    document = json.loads(location.read_text())
    assert document["snapshot_id"] == reference.snapshot_id
    assert document["resource_id"] == pip_path("pip1")
    assert document["full_type"] == "Microsoft.Network/publicIPAddresses"
    assert document["configuration"]["attributes"]["sku"] == "Basic"
    assert document["configuration"]["attributes"]["raw"]["properties"]["ipAddress"] == "20.1.2.3"


def test_snapshots_never_overwrite(tmp_path):
    recorder = FileBackupRecorder(tmp_path)

    first = recorder.snapshot(make_record())
    second = recorder.snapshot(make_record())

    assert first.snapshot_id != second.snapshot_id
    assert Path(first.location).exists()
    assert Path(second.location).exists()


def test_unwritable_directory_raises_backup_failure(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")

    with pytest.raises(BackupFailure) as excinfo:
        FileBackupRecorder(blocker).snapshot(make_record())
    assert excinfo.value.resource_id == pip_path("pip1")


def test_failed_write_leaves_no_partial_snapshot(tmp_path, monkeypatch):
    def broken_fsync(fd):
        raise OSError("disk full")

    monkeypatch.setattr("azure_sku_migrator.backup.recorder.os.fsync", broken_fsync)

    with pytest.raises(BackupFailure):
        FileBackupRecorder(tmp_path).snapshot(make_record())

    assert list(tmp_path.rglob("*.json")) == []


def test_unserialisable_record_creates_no_file(tmp_path):
    record = make_record()
    record.attributes["self"] = record.attributes

    with pytest.raises(BackupFailure):
        FileBackupRecorder(tmp_path).snapshot(record)

    assert list(tmp_path.rglob("*.json")) == []
