"""Resource classifier: decides whether and how a resource must migrate"""

from typing import Any, Callable, Dict, List, Tuple

from .errors import ClassificationError, MalformedIdentifier
from .identifier import parse_resource_id
from .interfaces import IProviderClient
from .models import (
    AzureResourceType,
    MigrationAssessment,
    MigrationType,
    PRIORITY_TIERS,
    Relation,
    ResourceIdentifier,
    ResourceRecord,
)
from ..utils.logger import setup_logger

BASIC_SKU = "Basic"
ALIGNED_SKU = "Aligned"
UNSUPPORTED_REASON = "type not supported for automatic assessment"


class ResourceClassifier:
    """Fetches resource state through a provider client and assesses migration need"""

    def __init__(self, client: IProviderClient, skip_dependency_check: bool = False):
        self.logger = setup_logger(self.__class__.__name__)
        self.client = client
        self.skip_dependency_check = skip_dependency_check
        self._assessors: Dict[str, Callable[[ResourceRecord], MigrationAssessment]] = {
            AzureResourceType.VIRTUAL_MACHINE.value: self._assess_virtual_machine,
            AzureResourceType.AVAILABILITY_SET.value: self._assess_availability_set,
            AzureResourceType.LOAD_BALANCER.value: self._assess_load_balancer,
            AzureResourceType.PUBLIC_IP.value: self._assess_public_ip,
        }

    def is_supported(self, identifier: ResourceIdentifier) -> bool:
        return identifier.full_type in self._assessors

    def classify(self, identifier: ResourceIdentifier) -> MigrationAssessment:
        """Assess a single resource, raising ClassificationError on provider failures"""

        if not self.is_supported(identifier):
            self.logger.info(f"{identifier.full_type} is not supported, marking {identifier.resource_name} as skip")
            return MigrationAssessment(
                needs_migration=False,
                migration_type=MigrationType.UNSUPPORTED,
                reason=UNSUPPORTED_REASON,
                priority_tier=PRIORITY_TIERS[MigrationType.UNSUPPORTED],
            )

        record = self.fetch_record(identifier)
        assessment = self._assessors[identifier.full_type](record)
        self.logger.debug(
            f"Assessed {identifier.resource_name}: needs_migration={assessment.needs_migration}, "
            f"type={assessment.migration_type.value}, dependencies={len(assessment.dependencies)}"
        )
        return assessment

    def fetch_record(self, identifier: ResourceIdentifier) -> ResourceRecord:
        """Fetch a fresh record for ``identifier``"""
        try:
            attributes = self.client.fetch_resource(identifier)
        except Exception as e:
            raise ClassificationError(identifier.resource_id, e) from e
        return ResourceRecord(identifier=identifier, attributes=dict(attributes or {}))

    def requires_migration(self, record: ResourceRecord) -> bool:
        """Pure SKU/type rule, without any dependency lookups"""

        full_type = record.identifier.full_type
        if full_type == AzureResourceType.VIRTUAL_MACHINE.value:
            return not record.get("os_disk_managed", False)
        if full_type == AzureResourceType.AVAILABILITY_SET.value:
            return record.sku != ALIGNED_SKU
        if full_type in (AzureResourceType.LOAD_BALANCER.value, AzureResourceType.PUBLIC_IP.value):
            return record.sku == BASIC_SKU
        return False

    def _assess_virtual_machine(self, record: ResourceRecord) -> MigrationAssessment:
        needs = self.requires_migration(record)
        dependencies: Tuple[ResourceIdentifier, ...] = ()

        if needs:
            reason = "OS disk has no managed-disk reference"
            availability_set_id = record.get("availability_set_id")
            if availability_set_id:
                dependencies = (self._parse_related(record.identifier, availability_set_id),)
        else:
            reason = "OS disk is already managed"

        return self._assessment(MigrationType.DISK_CONVERSION, needs, reason, dependencies=dependencies)

    def _assess_availability_set(self, record: ResourceRecord) -> MigrationAssessment:
        needs = self.requires_migration(record)
        if needs:
            reason = f"Availability set SKU is '{record.sku or 'Classic'}', not '{ALIGNED_SKU}'"
        else:
            reason = "Availability set is already aligned"
        return self._assessment(MigrationType.AVAILABILITY_SET_CONVERSION, needs, reason)

    def _assess_load_balancer(self, record: ResourceRecord) -> MigrationAssessment:
        needs = self.requires_migration(record)
        if not needs:
            return self._assessment(
                MigrationType.LOAD_BALANCER_UPGRADE, False, f"Load balancer SKU is '{record.sku}'"
            )

        frontends = self._fetch_associated(record.identifier, Relation.FRONTEND_PUBLIC_IPS)
        dependents = tuple(self._parse_related(record.identifier, item.get("id")) for item in frontends)
        return self._assessment(
            MigrationType.LOAD_BALANCER_UPGRADE,
            True,
            "Load balancer uses the Basic SKU",
            dependents=dependents,
        )

    def _assess_public_ip(self, record: ResourceRecord) -> MigrationAssessment:
        needs = self.requires_migration(record)
        if not needs:
            return self._assessment(
                MigrationType.PUBLIC_IP_UPGRADE, False, f"Public IP SKU is '{record.sku}'"
            )

        if self.skip_dependency_check:
            warning = (
                f"Load balancer dependency check skipped for {record.identifier.resource_name} "
                f"by operator override"
            )
            self.logger.warning(warning)
            return self._assessment(
                MigrationType.PUBLIC_IP_UPGRADE,
                True,
                "Public IP uses the Basic SKU",
                dependency_check_skipped=True,
                warnings=(warning,),
            )

        referencing = self._fetch_associated(record.identifier, Relation.REFERENCING_LOAD_BALANCERS)
        dependencies = tuple(
            self._parse_related(record.identifier, item.get("id"))
            for item in referencing
            if item.get("sku") == BASIC_SKU
        )
        reason = "Public IP uses the Basic SKU"
        if dependencies:
            names = ", ".join(d.resource_name for d in dependencies)
            reason += f"; Basic load balancer(s) {names} must migrate first"
        return self._assessment(MigrationType.PUBLIC_IP_UPGRADE, True, reason, dependencies=dependencies)

    def _assessment(
        self,
        migration_type: MigrationType,
        needs_migration: bool,
        reason: str,
        **kwargs: Any
    ) -> MigrationAssessment:
        return MigrationAssessment(
            needs_migration=needs_migration,
            migration_type=migration_type,
            reason=reason,
            priority_tier=PRIORITY_TIERS[migration_type],
            **kwargs
        )

    def _fetch_associated(self, identifier: ResourceIdentifier, relation: Relation) -> List[Dict[str, Any]]:
        try:
            return list(self.client.fetch_associated(identifier, relation) or [])
        except Exception as e:
            raise ClassificationError(identifier.resource_id, e) from e

    def _parse_related(self, identifier: ResourceIdentifier, related_id: Any) -> ResourceIdentifier:
        try:
            return parse_resource_id(related_id)
        except MalformedIdentifier as e:
            raise ClassificationError(identifier.resource_id, e) from e
