"""Core data models for Azure SKU Migrator"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Any, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AzureResourceType(Enum):
    """Azure resource types supported for migration assessment"""
    VIRTUAL_MACHINE = "Microsoft.Compute/virtualMachines"
    AVAILABILITY_SET = "Microsoft.Compute/availabilitySets"
    LOAD_BALANCER = "Microsoft.Network/loadBalancers"
    PUBLIC_IP = "Microsoft.Network/publicIPAddresses"


class MigrationType(Enum):
    """One-way transitions the migrator knows how to drive"""
    DISK_CONVERSION = "DiskConversion"
    LOAD_BALANCER_UPGRADE = "LoadBalancerUpgrade"
    PUBLIC_IP_UPGRADE = "PublicIPUpgrade"
    AVAILABILITY_SET_CONVERSION = "AvailabilitySetConversion"
    UNSUPPORTED = "Unsupported"


# Lower tiers migrate first. A dependency always sits in a lower tier than its dependent.
PRIORITY_TIERS: Dict[MigrationType, int] = {
    MigrationType.AVAILABILITY_SET_CONVERSION: 0,
    MigrationType.DISK_CONVERSION: 1,
    MigrationType.LOAD_BALANCER_UPGRADE: 2,
    MigrationType.PUBLIC_IP_UPGRADE: 3,
    MigrationType.UNSUPPORTED: 99,
}

class Relation(Enum):
    """Associations a provider client can resolve for a resource"""
    FRONTEND_PUBLIC_IPS = "frontendPublicIPs"
    REFERENCING_LOAD_BALANCERS = "referencingLoadBalancers"


class ResourceState(Enum):
    """Per-resource migration states"""
    PENDING = "Pending"
    DEPENDENCY_CHECK = "DependencyCheck"
    BACKING_UP = "BackingUp"
    EXECUTING = "Executing"
    VERIFYING = "Verifying"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"


@dataclass(frozen=True)
class ResourceIdentifier:
    """Parsed Azure resource path"""
    subscription_id: str
    resource_group: str
    provider: str
    resource_type: str
    resource_name: str
    child_segments: Tuple[str, ...] = ()

    @property
    def full_type(self) -> str:
        return f"{self.provider}/{self.resource_type}"

    @property
    def resource_id(self) -> str:
        path = (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/{self.provider}/{self.resource_type}/{self.resource_name}"
        )
        if self.child_segments:
            path += "/" + "/".join(self.child_segments)
        return path

    @property
    def key(self) -> Tuple[str, str, str]:
        """Unique within a subscription"""
        return (self.full_type, self.resource_group, self.resource_name)

    @property
    def top_level(self) -> "ResourceIdentifier":
        """The identified resource without any child segments"""
        return replace(self, child_segments=()) if self.child_segments else self

    def __str__(self) -> str:
        return self.resource_id


@dataclass
class ResourceRecord:
    """Provider-reported state relevant to migration decisions"""
    identifier: ResourceIdentifier
    attributes: Dict[str, Any] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=utc_now)

    @property
    def sku(self) -> Optional[str]:
        return self.attributes.get("sku")

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


@dataclass(frozen=True)
class MigrationAssessment:
    """Migration need for a single resource"""
    needs_migration: bool
    migration_type: MigrationType
    reason: str
    priority_tier: int
    dependencies: Tuple[ResourceIdentifier, ...] = ()
    # Resources that must migrate after this one; the planner inverts these into edges.
    dependents: Tuple[ResourceIdentifier, ...] = ()
    dependency_check_skipped: bool = False
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PlanEntry:
    """One resource's position in a migration plan"""
    identifier: ResourceIdentifier
    assessment: MigrationAssessment
    depends_on: Tuple[ResourceIdentifier, ...] = ()
    external_dependencies: Tuple[ResourceIdentifier, ...] = ()

    @property
    def needs_migration(self) -> bool:
        return self.assessment.needs_migration


@dataclass(frozen=True)
class MigrationPlan:
    """Ordered, immutable sequence of plan entries"""
    entries: Tuple[PlanEntry, ...]
    edges: Tuple[Tuple[ResourceIdentifier, ResourceIdentifier], ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def identifiers(self) -> List[ResourceIdentifier]:
        return [entry.identifier for entry in self.entries]

    def index_of(self, identifier: ResourceIdentifier) -> int:
        for index, entry in enumerate(self.entries):
            if entry.identifier == identifier:
                return index
        raise KeyError(str(identifier))

    @property
    def migration_count(self) -> int:
        return sum(1 for entry in self.entries if entry.needs_migration)


@dataclass(frozen=True)
class BackupReference:
    """Handle to a stored pre-migration snapshot"""
    snapshot_id: str
    location: str
    resource_id: str
    created_at: datetime


@dataclass
class BackupSnapshot:
    """Point-in-time copy of a resource's pre-migration configuration"""
    snapshot_id: str
    resource_id: str
    full_type: str
    captured_at: datetime
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "resource_id": self.resource_id,
            "full_type": self.full_type,
            "captured_at": self.captured_at.isoformat(),
            "configuration": self.configuration,
        }


@dataclass
class ExecutionHandle:
    """Outcome of a successful mutating call, consumed by verification"""
    identifier: ResourceIdentifier
    migration_type: MigrationType
    started_at: datetime
    finished_at: datetime
    attempts: int = 1
    provider_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VerificationOutcome:
    """Structured result of a post-migration check"""
    passed: bool
    details: str = ""
    observed: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MigrationResult:
    """Outcome for one plan entry"""
    identifier: ResourceIdentifier
    migration_type: MigrationType
    state: ResourceState = ResourceState.PENDING
    detail: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    needs_manual_verification: bool = False
    backup_reference: Optional[BackupReference] = None
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.state == ResourceState.SUCCEEDED

    @property
    def skipped(self) -> bool:
        return self.state == ResourceState.SKIPPED

    @property
    def failed(self) -> bool:
        return self.state == ResourceState.FAILED


@dataclass
class InputRejection:
    """Batch line excluded from the plan"""
    line_number: int
    raw: str
    error_kind: str
    message: str


@dataclass
class BatchReport:
    """Terminal artifact of one orchestrator run"""
    run_id: str
    started_at: datetime
    dry_run: bool = False
    finished_at: Optional[datetime] = None
    results: List[MigrationResult] = field(default_factory=list)
    rejections: List[InputRejection] = field(default_factory=list)
    edges: List[Tuple[ResourceIdentifier, ResourceIdentifier]] = field(default_factory=list)
    halted_by: Optional[str] = None

    def _count(self, state: ResourceState) -> int:
        return sum(1 for r in self.results if r.state == state)

    @property
    def succeeded(self) -> int:
        return self._count(ResourceState.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(ResourceState.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ResourceState.FAILED)

    @property
    def not_attempted(self) -> int:
        return self._count(ResourceState.PENDING)

    @property
    def backup_references(self) -> List[BackupReference]:
        return [r.backup_reference for r in self.results if r.backup_reference]

    @property
    def exit_code(self) -> int:
        return 0 if self.failed == 0 else 1

    def result_for(self, identifier: ResourceIdentifier) -> MigrationResult:
        for result in self.results:
            if result.identifier == identifier:
                return result
        raise KeyError(str(identifier))


@dataclass
class MigrationConfiguration:
    """Configuration for a migration run"""
    continue_on_error: bool = False
    dry_run: bool = False
    force: bool = False
    skip_dependency_check: bool = False
    backup_directory: str = "migration_backups"
    pacing_delay_seconds: float = 5.0
    snapshot_retry_wait_seconds: float = 60.0
    operation_timeout_seconds: int = 1800
    report_format: str = "json"
    report_path: Optional[str] = None
    html_report_path: Optional[str] = None
    log_level: str = "INFO"
    log_to_file: bool = False
