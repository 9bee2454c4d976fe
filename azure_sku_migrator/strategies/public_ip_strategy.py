"""Basic to Standard public IP upgrade"""

from typing import Any, Dict

from ..core.errors import UnsupportedScenario
from ..core.models import MigrationType, ResourceRecord, VerificationOutcome
from .base import BaseMigrationStrategy

STANDARD_SKU = "Standard"

# Gateways whose Basic IPs are migrated together with the gateway itself
GATEWAY_SEGMENTS = ("/virtualNetworkGateways/", "/applicationGateways/")


class PublicIPUpgradeStrategy(BaseMigrationStrategy):
    """Upgrades a public IP's SKU in place; the provider switches allocation to Static"""

    def get_migration_type(self) -> MigrationType:
        return MigrationType.PUBLIC_IP_UPGRADE

    def validate(self, record: ResourceRecord) -> None:
        ip_configuration_id = record.get("ip_configuration_id") or ""
        for segment in GATEWAY_SEGMENTS:
            if segment in ip_configuration_id:
                raise UnsupportedScenario(
                    f"Public IP {record.identifier.resource_name} is attached to a "
                    f"{segment.strip('/')} resource and must be migrated with it"
                )

    def _mutate(self, record: ResourceRecord) -> Dict[str, Any]:
        return self.client.apply_sku_change(record.identifier, STANDARD_SKU)

    def _check_post_condition(self, attributes: Dict[str, Any]) -> VerificationOutcome:
        return self._expect_sku(attributes, STANDARD_SKU)
