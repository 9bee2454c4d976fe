"""Shared behaviour for migration strategies"""

from abc import abstractmethod
from typing import Any, Dict

from ..core.errors import ExecutionError, ProviderError
from ..core.interfaces import IMigrationStrategy, IProviderClient
from ..core.models import (
    ExecutionHandle,
    MigrationConfiguration,
    ResourceRecord,
    VerificationOutcome,
    utc_now,
)
from ..utils.logger import setup_logger
from .retry import call_with_snapshot_retry


class BaseMigrationStrategy(IMigrationStrategy):
    """Runs the mutating call with the retry policy and re-reads state for verification.

    Subclasses supply ``validate``, ``_mutate`` and ``_check_post_condition``.
    """

    def __init__(self, client: IProviderClient):
        self.logger = setup_logger(self.__class__.__name__)
        self.client = client

    def get_strategy_name(self) -> str:
        return self.__class__.__name__

    def execute(self, record: ResourceRecord, config: MigrationConfiguration) -> ExecutionHandle:
        identifier = record.identifier
        attempts = 0

        def _attempt():
            nonlocal attempts
            attempts += 1
            return self._mutate(record)

        started_at = utc_now()
        self.logger.info(f"Executing {self.get_migration_type().value} on {identifier.resource_name}")
        try:
            response = call_with_snapshot_retry(_attempt, config.snapshot_retry_wait_seconds, self.logger)
        except ProviderError as e:
            raise ExecutionError(
                f"{self.get_migration_type().value} failed for {identifier.resource_name} "
                f"after {attempts} attempt(s): {e}",
                cause=e,
            ) from e

        return ExecutionHandle(
            identifier=identifier,
            migration_type=self.get_migration_type(),
            started_at=started_at,
            finished_at=utc_now(),
            attempts=attempts,
            provider_response=dict(response or {}),
        )

    def verify(self, handle: ExecutionHandle) -> VerificationOutcome:
        try:
            attributes = self.client.fetch_resource(handle.identifier)
        except Exception as e:
            self.logger.error(f"Could not re-read {handle.identifier.resource_name} for verification: {e}")
            return VerificationOutcome(passed=False, details=f"Could not re-read resource: {e}")
        return self._check_post_condition(attributes or {})

    @abstractmethod
    def _mutate(self, record: ResourceRecord) -> Dict[str, Any]:
        """Issue the provider write call"""
        pass

    @abstractmethod
    def _check_post_condition(self, attributes: Dict[str, Any]) -> VerificationOutcome:
        """Compare re-read attributes with the expected end state"""
        pass

    def _expect_sku(self, attributes: Dict[str, Any], expected: str) -> VerificationOutcome:
        observed = attributes.get("sku")
        if observed == expected:
            return VerificationOutcome(passed=True, details=f"SKU is {expected}", observed={"sku": observed})
        return VerificationOutcome(
            passed=False,
            details=f"Expected SKU {expected}, found {observed}",
            observed={"sku": observed},
        )
