"""Error taxonomy for the Azure SKU Migrator"""

from enum import Enum
from typing import Any, Optional, Sequence


class ProviderErrorCode(Enum):
    """Typed failure codes reported by provider clients"""
    NOT_FOUND = "not_found"
    AUTHORIZATION_FAILED = "authorization_failed"
    THROTTLED = "throttled"
    TRANSIENT = "transient"
    SNAPSHOT_COUNT_EXCEEDED = "snapshot_count_exceeded"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class MigrationError(Exception):
    """Base class for all migrator errors"""


class ProviderError(MigrationError):
    """A provider read or write call failed"""

    def __init__(self, code: ProviderErrorCode, message: str, resource_id: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.resource_id = resource_id

    @property
    def is_transient(self) -> bool:
        return self.code in (
            ProviderErrorCode.THROTTLED,
            ProviderErrorCode.TRANSIENT,
            ProviderErrorCode.SNAPSHOT_COUNT_EXCEEDED,
        )

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.args[0]}"


class MalformedIdentifier(MigrationError):
    """Resource path does not have the expected structure"""

    def __init__(self, path: Any, message: str):
        super().__init__(f"{message}: {path!r}")
        self.path = path


class ClassificationError(MigrationError):
    """Provider read failed while assessing a resource"""

    def __init__(self, resource_id: str, cause: Exception):
        super().__init__(f"Failed to classify {resource_id}: {cause}")
        self.resource_id = resource_id
        self.cause = cause


class UnsupportedScenario(MigrationError):
    """Resource has a configuration the migration cannot handle"""


class CyclicDependency(MigrationError):
    """Dependency edges form a cycle, so no safe order exists"""

    def __init__(self, participants: Sequence[str]):
        self.participants = list(participants)
        super().__init__("Circular dependency between: " + " -> ".join(self.participants))


class ExecutionError(MigrationError):
    """A mutating provider call failed"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class VerificationFailure(MigrationError):
    """Post-condition not met after an apparently successful execution"""


class BackupFailure(MigrationError):
    """Could not record a pre-migration snapshot"""

    def __init__(self, resource_id: str, cause: Exception):
        super().__init__(f"Backup of {resource_id} failed: {cause}")
        self.resource_id = resource_id
        self.cause = cause


class ConfigurationError(MigrationError):
    """Invalid configuration value"""


class DependencyNotSatisfied(MigrationError):
    """An upstream resource has not been migrated or confirmed clean"""
