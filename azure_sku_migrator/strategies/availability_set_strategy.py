"""Conversion of Classic availability sets to the Aligned form"""

from typing import Any, Dict

from ..core.errors import UnsupportedScenario
from ..core.models import MigrationType, ResourceRecord, VerificationOutcome
from .base import BaseMigrationStrategy

ALIGNED_SKU = "Aligned"
MAX_ALIGNED_FAULT_DOMAINS = 3


class AvailabilitySetConversionStrategy(BaseMigrationStrategy):

    def get_migration_type(self) -> MigrationType:
        return MigrationType.AVAILABILITY_SET_CONVERSION

    def validate(self, record: ResourceRecord) -> None:
        fault_domains = record.get("platform_fault_domain_count") or 0
        if fault_domains > MAX_ALIGNED_FAULT_DOMAINS:
            raise UnsupportedScenario(
                f"Availability set {record.identifier.resource_name} uses {fault_domains} fault "
                f"domains; aligned sets support at most {MAX_ALIGNED_FAULT_DOMAINS}"
            )

    def _mutate(self, record: ResourceRecord) -> Dict[str, Any]:
        return self.client.apply_sku_change(record.identifier, ALIGNED_SKU)

    def _check_post_condition(self, attributes: Dict[str, Any]) -> VerificationOutcome:
        return self._expect_sku(attributes, ALIGNED_SKU)
