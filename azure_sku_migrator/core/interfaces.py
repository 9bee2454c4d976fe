"""Core interfaces for the Azure SKU Migrator system"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional
from .models import (
    BatchReport,
    BackupReference,
    ExecutionHandle,
    MigrationConfiguration,
    MigrationType,
    Relation,
    ResourceIdentifier,
    ResourceRecord,
    VerificationOutcome,
)


class IProviderClient(ABC):
    """Interface to the cloud resource provider.

    Implementations return normalised attribute dictionaries and raise
    ``ProviderError`` with a typed ``ProviderErrorCode`` on failure.
    """

    @abstractmethod
    def fetch_resource(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        """Fetch current attributes of a resource"""
        pass

    @abstractmethod
    def fetch_associated(
        self,
        identifier: ResourceIdentifier,
        relation: Relation
    ) -> List[Dict[str, Any]]:
        """Fetch resources associated with ``identifier``; each item carries an ``id`` and ``sku``"""
        pass

    @abstractmethod
    def apply_sku_change(self, identifier: ResourceIdentifier, sku: str) -> Dict[str, Any]:
        """Change a resource's SKU in place"""
        pass

    @abstractmethod
    def replace_disk(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        """Convert a VM's unmanaged disks to managed disks"""
        pass

    @abstractmethod
    def create_replacement_resource(
        self,
        identifier: ResourceIdentifier,
        overrides: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Recreate a resource with ``overrides`` applied to its current definition"""
        pass


class IMigrationStrategy(ABC):
    """Interface for per-type migration strategies"""

    @abstractmethod
    def get_migration_type(self) -> MigrationType:
        """Return the migration type this strategy handles"""
        pass

    @abstractmethod
    def get_strategy_name(self) -> str:
        """Return strategy name"""
        pass

    @abstractmethod
    def validate(self, record: ResourceRecord) -> None:
        """Raise UnsupportedScenario if the resource cannot be migrated as configured"""
        pass

    @abstractmethod
    def execute(self, record: ResourceRecord, config: MigrationConfiguration) -> ExecutionHandle:
        """Perform the mutating operation, raising ExecutionError on failure"""
        pass

    @abstractmethod
    def verify(self, handle: ExecutionHandle) -> VerificationOutcome:
        """Confirm the expected post-condition without raising"""
        pass


class IBackupRecorder(ABC):
    """Interface for pre-migration snapshot storage"""

    @abstractmethod
    def snapshot(self, record: ResourceRecord) -> BackupReference:
        """Durably store the record, raising BackupFailure on any error"""
        pass


class IConfirmationPrompt(ABC):
    """Interface for operator confirmation"""

    @abstractmethod
    def confirm(self, message: str) -> bool:
        """Return True if the operator accepts"""
        pass


class AutoConfirm(IConfirmationPrompt):
    """Confirmation that always accepts (``--force``)"""

    def confirm(self, message: str) -> bool:
        return True


class IReportGenerator(ABC):
    """Interface for report generators"""

    @abstractmethod
    def generate(
        self,
        report: BatchReport,
        output_path: str,
        config: Optional[Dict[str, Any]] = None
    ) -> str:
        """Generate report and return path"""
        pass
