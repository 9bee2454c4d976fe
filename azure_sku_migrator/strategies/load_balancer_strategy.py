"""Basic to Standard load balancer upgrade"""

from typing import Any, Dict

from ..core.errors import UnsupportedScenario
from ..core.models import MigrationType, ResourceRecord, VerificationOutcome
from .base import BaseMigrationStrategy

STANDARD_SKU = "Standard"

# Backend pool names created and reconciled by AKS
AKS_POOL_NAMES = {"kubernetes", "aksOutboundBackendPool"}


class LoadBalancerUpgradeStrategy(BaseMigrationStrategy):
    """Recreates a Basic load balancer as Standard with the same configuration"""

    def get_migration_type(self) -> MigrationType:
        return MigrationType.LOAD_BALANCER_UPGRADE

    def validate(self, record: ResourceRecord) -> None:
        name = record.identifier.resource_name

        ipv6 = [
            f.get("name") for f in record.get("frontend_ip_configurations", [])
            if f.get("ip_version") == "IPv6"
        ]
        if ipv6:
            raise UnsupportedScenario(
                f"Load balancer {name} has IPv6 frontend configurations: {', '.join(ipv6)}"
            )

        aks_pools = [
            p.get("name") for p in record.get("backend_pools", [])
            if p.get("aks_managed") or p.get("name") in AKS_POOL_NAMES
        ]
        if aks_pools:
            raise UnsupportedScenario(
                f"Load balancer {name} has AKS-managed backend pools ({', '.join(aks_pools)}); "
                f"upgrade through the AKS cluster"
            )

    def _mutate(self, record: ResourceRecord) -> Dict[str, Any]:
        return self.client.create_replacement_resource(record.identifier, {"sku": STANDARD_SKU})

    def _check_post_condition(self, attributes: Dict[str, Any]) -> VerificationOutcome:
        return self._expect_sku(attributes, STANDARD_SKU)
