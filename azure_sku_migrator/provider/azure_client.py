"""Azure Resource Manager implementation of the provider client"""

from typing import Any, Callable, Dict, List, Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.mgmt.compute.models import Sku
from azure.mgmt.network.models import LoadBalancerSku, PublicIPAddressSku

from ..auth.manager import AuthenticationManager
from ..core.errors import ProviderError, ProviderErrorCode
from ..core.identifier import parse_resource_id
from ..core.interfaces import IProviderClient
from ..core.models import AzureResourceType, Relation, ResourceIdentifier
from ..utils.logger import setup_logger

AKS_TAG = "aks-managed-cluster-name"

# ARM error code -> ProviderErrorCode
_ERROR_CODES = {
    "SnapshotCountExceeded": ProviderErrorCode.SNAPSHOT_COUNT_EXCEEDED,
    "AuthorizationFailed": ProviderErrorCode.AUTHORIZATION_FAILED,
    "LinkedAuthorizationFailed": ProviderErrorCode.AUTHORIZATION_FAILED,
    "ResourceNotFound": ProviderErrorCode.NOT_FOUND,
    "NotFound": ProviderErrorCode.NOT_FOUND,
    "TooManyRequests": ProviderErrorCode.THROTTLED,
    "RetryableError": ProviderErrorCode.TRANSIENT,
    "Conflict": ProviderErrorCode.CONFLICT,
    "AnotherOperationInProgress": ProviderErrorCode.CONFLICT,
}


def translate_azure_error(error: AzureError) -> ProviderErrorCode:
    """Map an azure-core exception to a ProviderErrorCode"""

    if isinstance(error, HttpResponseError):
        odata = getattr(error, "error", None)
        arm_code = getattr(odata, "code", None)
        if arm_code in _ERROR_CODES:
            return _ERROR_CODES[arm_code]

    if isinstance(error, ResourceNotFoundError):
        return ProviderErrorCode.NOT_FOUND
    if isinstance(error, ClientAuthenticationError):
        return ProviderErrorCode.AUTHORIZATION_FAILED
    if isinstance(error, (ServiceRequestError, ServiceResponseError)):
        return ProviderErrorCode.TRANSIENT

    if isinstance(error, HttpResponseError):
        status = error.status_code or 0
        if status in (401, 403):
            return ProviderErrorCode.AUTHORIZATION_FAILED
        if status == 404:
            return ProviderErrorCode.NOT_FOUND
        if status == 409:
            return ProviderErrorCode.CONFLICT
        if status == 429:
            return ProviderErrorCode.THROTTLED
        if status >= 500:
            return ProviderErrorCode.TRANSIENT

    return ProviderErrorCode.UNKNOWN


class AzureProviderClient(IProviderClient):
    """Provider client backed by the Azure management SDKs.

    Returns plain attribute dictionaries; the SDK model is kept under ``raw``
    so backups capture the full definition.
    """

    def __init__(
        self,
        auth_manager: Optional[AuthenticationManager] = None,
        operation_timeout_seconds: int = 1800
    ):
        self.logger = setup_logger(self.__class__.__name__)
        self.auth_manager = auth_manager or AuthenticationManager()
        self.operation_timeout_seconds = operation_timeout_seconds

    def fetch_resource(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        fetchers = {
            AzureResourceType.VIRTUAL_MACHINE.value: self._fetch_virtual_machine,
            AzureResourceType.AVAILABILITY_SET.value: self._fetch_availability_set,
            AzureResourceType.LOAD_BALANCER.value: self._fetch_load_balancer,
            AzureResourceType.PUBLIC_IP.value: self._fetch_public_ip,
        }
        fetcher = fetchers.get(identifier.full_type)
        if fetcher is None:
            raise ProviderError(
                ProviderErrorCode.UNKNOWN,
                f"Fetching {identifier.full_type} is not supported",
                identifier.resource_id,
            )
        return self._call(identifier, lambda: fetcher(identifier))

    def fetch_associated(self, identifier: ResourceIdentifier, relation: Relation) -> List[Dict[str, Any]]:
        if relation == Relation.FRONTEND_PUBLIC_IPS:
            return self._call(identifier, lambda: self._frontend_public_ips(identifier))
        if relation == Relation.REFERENCING_LOAD_BALANCERS:
            return self._call(identifier, lambda: self._referencing_load_balancers(identifier))
        raise ProviderError(
            ProviderErrorCode.UNKNOWN, f"Unknown relation {relation}", identifier.resource_id
        )

    def apply_sku_change(self, identifier: ResourceIdentifier, sku: str) -> Dict[str, Any]:
        if identifier.full_type == AzureResourceType.PUBLIC_IP.value:
            return self._call(identifier, lambda: self._upgrade_public_ip(identifier, sku))
        if identifier.full_type == AzureResourceType.AVAILABILITY_SET.value:
            return self._call(identifier, lambda: self._convert_availability_set(identifier, sku))
        raise ProviderError(
            ProviderErrorCode.UNKNOWN,
            f"In-place SKU change is not supported for {identifier.full_type}",
            identifier.resource_id,
        )

    def replace_disk(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        if identifier.full_type != AzureResourceType.VIRTUAL_MACHINE.value:
            raise ProviderError(
                ProviderErrorCode.UNKNOWN,
                f"Disk conversion is not supported for {identifier.full_type}",
                identifier.resource_id,
            )
        return self._call(identifier, lambda: self._convert_vm_disks(identifier))

    def create_replacement_resource(
        self,
        identifier: ResourceIdentifier,
        overrides: Dict[str, Any]
    ) -> Dict[str, Any]:
        if identifier.full_type != AzureResourceType.LOAD_BALANCER.value:
            raise ProviderError(
                ProviderErrorCode.UNKNOWN,
                f"Replacement is not supported for {identifier.full_type}",
                identifier.resource_id,
            )
        return self._call(identifier, lambda: self._replace_load_balancer(identifier, overrides))

    def _call(self, identifier: ResourceIdentifier, func: Callable[[], Any]) -> Any:
        try:
            return func()
        except AzureError as e:
            code = translate_azure_error(e)
            self.logger.debug(f"Azure call for {identifier.resource_name} failed with {code.value}: {e}")
            raise ProviderError(code, str(e), identifier.resource_id) from e

    def _compute(self, identifier: ResourceIdentifier):
        return self.auth_manager.get_clients_for_subscription(identifier.subscription_id)['compute']

    def _network(self, identifier: ResourceIdentifier):
        return self.auth_manager.get_clients_for_subscription(identifier.subscription_id)['network']

    def _wait(self, poller, identifier: ResourceIdentifier) -> Any:
        """Block until a long-running operation completes.

        ``LROPoller.result(timeout)`` returns while the operation is still running
        once the timeout expires, so completion is checked explicitly.
        """
        result = poller.result(timeout=self.operation_timeout_seconds)
        if not poller.done():
            raise ProviderError(
                ProviderErrorCode.TRANSIENT,
                f"Operation on {identifier.resource_name} did not finish within "
                f"{self.operation_timeout_seconds}s",
                identifier.resource_id,
            )
        return result

    def _fetch_virtual_machine(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        vm = self._compute(identifier).virtual_machines.get(
            identifier.resource_group, identifier.resource_name, expand="instanceView"
        )
        os_disk = vm.storage_profile.os_disk
        encryption = os_disk.encryption_settings

        return {
            "location": vm.location,
            "os_disk_managed": os_disk.managed_disk is not None,
            "os_disk_vhd_uri": os_disk.vhd.uri if os_disk.vhd else None,
            "os_disk_encrypted": bool(encryption and encryption.enabled),
            "data_disks": [
                {
                    "name": disk.name,
                    "lun": disk.lun,
                    "managed": disk.managed_disk is not None,
                    "vhd_uri": disk.vhd.uri if disk.vhd else None,
                }
                for disk in (vm.storage_profile.data_disks or [])
            ],
            "availability_set_id": vm.availability_set.id if vm.availability_set else None,
            "virtual_machine_scale_set_id": (
                vm.virtual_machine_scale_set.id if vm.virtual_machine_scale_set else None
            ),
            "power_state": self._power_state(vm),
            "raw": vm.as_dict(),
        }

    def _fetch_availability_set(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        avset = self._compute(identifier).availability_sets.get(
            identifier.resource_group, identifier.resource_name
        )
        return {
            "location": avset.location,
            "sku": avset.sku.name if avset.sku else "Classic",
            "platform_fault_domain_count": avset.platform_fault_domain_count,
            "virtual_machines": [vm.id for vm in (avset.virtual_machines or [])],
            "raw": avset.as_dict(),
        }

    def _fetch_load_balancer(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        network = self._network(identifier)
        lb = network.load_balancers.get(identifier.resource_group, identifier.resource_name)
        aks_managed = AKS_TAG in (lb.tags or {})

        frontends = []
        for frontend in lb.frontend_ip_configurations or []:
            public_ip_id = frontend.public_ip_address.id if frontend.public_ip_address else None
            ip_version = frontend.private_ip_address_version or "IPv4"
            if public_ip_id:
                pip_identifier = parse_resource_id(public_ip_id)
                pip = network.public_ip_addresses.get(
                    pip_identifier.resource_group, pip_identifier.resource_name
                )
                ip_version = pip.public_ip_address_version or "IPv4"
            frontends.append({
                "name": frontend.name,
                "public_ip_address_id": public_ip_id,
                "subnet_id": frontend.subnet.id if frontend.subnet else None,
                "ip_version": ip_version,
            })

        return {
            "location": lb.location,
            "sku": lb.sku.name if lb.sku else "Basic",
            "frontend_ip_configurations": frontends,
            "backend_pools": [
                {"name": pool.name, "aks_managed": aks_managed}
                for pool in (lb.backend_address_pools or [])
            ],
            "raw": lb.as_dict(),
        }

    def _fetch_public_ip(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        pip = self._network(identifier).public_ip_addresses.get(
            identifier.resource_group, identifier.resource_name
        )
        return self._public_ip_attributes(pip)

    def _public_ip_attributes(self, pip) -> Dict[str, Any]:
        return {
            "id": pip.id,
            "location": pip.location,
            "sku": pip.sku.name if pip.sku else "Basic",
            "ip_address": pip.ip_address,
            "public_ip_allocation_method": pip.public_ip_allocation_method,
            "ip_version": pip.public_ip_address_version or "IPv4",
            "ip_configuration_id": pip.ip_configuration.id if pip.ip_configuration else None,
            "raw": pip.as_dict(),
        }

    def _frontend_public_ips(self, identifier: ResourceIdentifier) -> List[Dict[str, Any]]:
        network = self._network(identifier)
        lb = network.load_balancers.get(identifier.resource_group, identifier.resource_name)

        associated = []
        for frontend in lb.frontend_ip_configurations or []:
            if not frontend.public_ip_address:
                continue
            pip_identifier = parse_resource_id(frontend.public_ip_address.id)
            pip = network.public_ip_addresses.get(pip_identifier.resource_group, pip_identifier.resource_name)
            associated.append(self._public_ip_attributes(pip))
        return associated

    def _referencing_load_balancers(self, identifier: ResourceIdentifier) -> List[Dict[str, Any]]:
        # ARM ids are case-insensitive; compare them that way within the provider boundary
        target = identifier.resource_id.lower()
        referencing = []
        for lb in self._network(identifier).load_balancers.list(identifier.resource_group):
            for frontend in lb.frontend_ip_configurations or []:
                if frontend.public_ip_address and frontend.public_ip_address.id.lower() == target:
                    referencing.append({"id": lb.id, "sku": lb.sku.name if lb.sku else "Basic"})
                    break
        return referencing

    def _upgrade_public_ip(self, identifier: ResourceIdentifier, sku: str) -> Dict[str, Any]:
        network = self._network(identifier)
        pip = network.public_ip_addresses.get(identifier.resource_group, identifier.resource_name)
        pip.sku = PublicIPAddressSku(name=sku, tier="Regional")
        pip.public_ip_allocation_method = "Static"
        updated = self._wait(network.public_ip_addresses.begin_create_or_update(
            identifier.resource_group, identifier.resource_name, pip
        ), identifier)
        self.logger.info(f"Public IP {identifier.resource_name} updated to {sku}")
        return self._public_ip_attributes(updated)

    def _convert_availability_set(self, identifier: ResourceIdentifier, sku: str) -> Dict[str, Any]:
        compute = self._compute(identifier)
        avset = compute.availability_sets.get(identifier.resource_group, identifier.resource_name)
        avset.sku = Sku(name=sku)
        compute.availability_sets.create_or_update(identifier.resource_group, identifier.resource_name, avset)
        self.logger.info(f"Availability set {identifier.resource_name} converted to {sku}")
        return self._fetch_availability_set(identifier)

    def _convert_vm_disks(self, identifier: ResourceIdentifier) -> Dict[str, Any]:
        compute = self._compute(identifier)
        rg, name = identifier.resource_group, identifier.resource_name
        vm = compute.virtual_machines.get(rg, name, expand="instanceView")
        was_running = self._power_state(vm) == "running"

        self.logger.info(f"Deallocating VM {name}")
        self._wait(compute.virtual_machines.begin_deallocate(rg, name), identifier)
        self.logger.info(f"Converting disks of VM {name} to managed disks")
        self._wait(compute.virtual_machines.begin_convert_to_managed_disks(rg, name), identifier)
        if was_running:
            self.logger.info(f"Starting VM {name}")
            self._wait(compute.virtual_machines.begin_start(rg, name), identifier)

        return self._fetch_virtual_machine(identifier)

    def _replace_load_balancer(self, identifier: ResourceIdentifier, overrides: Dict[str, Any]) -> Dict[str, Any]:
        network = self._network(identifier)
        rg, name = identifier.resource_group, identifier.resource_name
        lb = network.load_balancers.get(rg, name)
        sku = overrides.get("sku", "Standard")

        # Every frontend IP is read before the delete; a Standard load balancer
        # only accepts Standard public IPs.
        basic_ips = []
        for frontend in lb.frontend_ip_configurations or []:
            if not frontend.public_ip_address:
                continue
            pip_identifier = parse_resource_id(frontend.public_ip_address.id)
            pip = network.public_ip_addresses.get(pip_identifier.resource_group, pip_identifier.resource_name)
            if pip.sku is None or pip.sku.name == "Basic":
                basic_ips.append((pip_identifier, pip))

        # Static allocation keeps the frontend addresses once they are detached
        for pip_identifier, pip in basic_ips:
            if pip.public_ip_allocation_method != "Static":
                self.logger.info(f"Pinning address of public IP {pip_identifier.resource_name}")
                pip.public_ip_allocation_method = "Static"
                self._wait(network.public_ip_addresses.begin_create_or_update(
                    pip_identifier.resource_group, pip_identifier.resource_name, pip
                ), pip_identifier)

        # ARM rejects SKU changes on an existing load balancer, so the definition is recreated
        original_sku = lb.sku
        lb.etag = None
        self.logger.info(f"Deleting Basic load balancer {name} for recreation")
        self._wait(network.load_balancers.begin_delete(rg, name), identifier)

        upgraded: List[ResourceIdentifier] = []
        try:
            for pip_identifier, _ in basic_ips:
                self._upgrade_public_ip(pip_identifier, sku)
                upgraded.append(pip_identifier)
            lb.sku = LoadBalancerSku(name=sku)
            self.logger.info(f"Recreating load balancer {name} as {sku}")
            self._wait(network.load_balancers.begin_create_or_update(rg, name, lb), identifier)
        except (AzureError, ProviderError) as e:
            self.logger.error(f"Recreating load balancer {name} failed: {e}")
            lb.sku = original_sku
            self._restore_load_balancer(identifier, lb, upgraded)
            raise

        return self._fetch_load_balancer(identifier)

    def _restore_load_balancer(
        self,
        identifier: ResourceIdentifier,
        lb,
        upgraded: List[ResourceIdentifier]
    ) -> None:
        name = identifier.resource_name
        if upgraded:
            self.logger.error(
                f"Load balancer {name} cannot be restored as Basic: frontend IPs already upgraded "
                f"({', '.join(p.resource_name for p in upgraded)}). Recreate it from its backup."
            )
            return

        network = self._network(identifier)
        try:
            self._wait(network.load_balancers.begin_create_or_update(
                identifier.resource_group, name, lb
            ), identifier)
        except (AzureError, ProviderError) as e:
            self.logger.error(f"Restoring load balancer {name} failed, recreate it from its backup: {e}")
            return
        self.logger.warning(f"Restored load balancer {name} with its original definition")

    @staticmethod
    def _power_state(vm) -> Optional[str]:
        statuses = vm.instance_view.statuses if vm.instance_view else []
        for status in statuses or []:
            if status.code and status.code.startswith("PowerState/"):
                return status.code.split("/", 1)[1]
        return None
