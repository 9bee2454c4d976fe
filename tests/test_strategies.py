import pytest

from azure_sku_migrator.core.errors import (
    ExecutionError,
    ProviderError,
    ProviderErrorCode,
    UnsupportedScenario,
)
from azure_sku_migrator.core.models import MigrationType, ResourceRecord
from azure_sku_migrator.strategies.availability_set_strategy import AvailabilitySetConversionStrategy
from azure_sku_migrator.strategies.disk_strategy import DiskConversionStrategy
from azure_sku_migrator.strategies.load_balancer_strategy import LoadBalancerUpgradeStrategy
from azure_sku_migrator.strategies.public_ip_strategy import PublicIPUpgradeStrategy
from azure_sku_migrator.strategies.registry import StrategyRegistry, create_default_registry

from conftest import ident


def record_for(client, path):
    return ResourceRecord(identifier=ident(path), attributes=client.fetch_resource(ident(path)))


def snapshot_limit():
    return ProviderError(ProviderErrorCode.SNAPSHOT_COUNT_EXCEEDED, "too many snapshots")


class TestDiskConversion:

    def test_execute_and_verify(self, fake_client, config):
        vm = fake_client.add_vm("vm1", data_disks=[{"name": "data0", "lun": 0, "managed": False}])
        strategy = DiskConversionStrategy(fake_client)
        record = record_for(fake_client, vm)

        strategy.validate(record)
        handle = strategy.execute(record, config)
        outcome = strategy.verify(handle)

        assert handle.migration_type == MigrationType.DISK_CONVERSION
        assert handle.attempts == 1
        assert fake_client.calls_for("replace_disk") == [vm]
        assert outcome.passed

    def test_scale_set_vm_is_unsupported(self, fake_client):
        vm = fake_client.add_vm("vm1", virtual_machine_scale_set_id="/subscriptions/s/x")

        with pytest.raises(UnsupportedScenario):
            DiskConversionStrategy(fake_client).validate(record_for(fake_client, vm))

    def test_encrypted_disk_is_unsupported(self, fake_client):
        vm = fake_client.add_vm("vm1", os_disk_encrypted=True)

        with pytest.raises(UnsupportedScenario):
            DiskConversionStrategy(fake_client).validate(record_for(fake_client, vm))

    def test_verify_fails_when_a_data_disk_stays_unmanaged(self, fake_client, config):
        vm = fake_client.add_vm("vm1", data_disks=[{"name": "data0", "lun": 0, "managed": False}])
        fake_client.ignore_writes.add(vm)
        strategy = DiskConversionStrategy(fake_client)
        record = record_for(fake_client, vm)
        fake_client.resources[vm]["os_disk_managed"] = True

        outcome = strategy.verify(strategy.execute(record, config))

        assert not outcome.passed
        assert "data0" in outcome.details


class TestRetryPolicy:

    def test_snapshot_limit_is_retried_exactly_once(self, fake_client, config):
        vm = fake_client.add_vm("vm1")
        fake_client.script_failure("replace_disk", vm, snapshot_limit())

        handle = DiskConversionStrategy(fake_client).execute(record_for(fake_client, vm), config)

        assert handle.attempts == 2
        assert len(fake_client.calls_for("replace_disk")) == 2

    def test_second_snapshot_limit_fails(self, fake_client, config):
        vm = fake_client.add_vm("vm1")
        fake_client.script_failure("replace_disk", vm, snapshot_limit(), snapshot_limit())

        with pytest.raises(ExecutionError) as excinfo:
            DiskConversionStrategy(fake_client).execute(record_for(fake_client, vm), config)

        assert len(fake_client.calls_for("replace_disk")) == 2
        assert excinfo.value.cause.code == ProviderErrorCode.SNAPSHOT_COUNT_EXCEEDED

    @pytest.mark.parametrize("code", [
        ProviderErrorCode.AUTHORIZATION_FAILED,
        ProviderErrorCode.CONFLICT,
        ProviderErrorCode.THROTTLED,
    ])
    def test_other_provider_errors_are_not_retried(self, fake_client, config, code):
        pip = fake_client.add_pip("pip1")
        fake_client.script_failure("apply_sku_change", pip, ProviderError(code, "nope"))

        with pytest.raises(ExecutionError):
            PublicIPUpgradeStrategy(fake_client).execute(record_for(fake_client, pip), config)

        assert len(fake_client.calls_for("apply_sku_change")) == 1

    def test_retry_message_text_is_not_inspected(self, fake_client, config):
        pip = fake_client.add_pip("pip1")
        fake_client.script_failure(
            "apply_sku_change", pip,
            ProviderError(ProviderErrorCode.UNKNOWN, "SnapshotCountExceeded"),
        )

        with pytest.raises(ExecutionError):
            PublicIPUpgradeStrategy(fake_client).execute(record_for(fake_client, pip), config)

        assert len(fake_client.calls_for("apply_sku_change")) == 1


class TestLoadBalancerUpgrade:

    def test_execute_recreates_as_standard(self, fake_client, config):
        lb = fake_client.add_lb("lb1")
        strategy = LoadBalancerUpgradeStrategy(fake_client)

        outcome = strategy.verify(strategy.execute(record_for(fake_client, lb), config))

        assert fake_client.write_calls == [("create_replacement_resource", lb, {"sku": "Standard"})]
        assert outcome.passed

    def test_ipv6_frontend_is_unsupported(self, fake_client):
        lb = fake_client.add_lb("lb1")
        fake_client.resources[lb]["frontend_ip_configurations"] = [{"name": "fe6", "ip_version": "IPv6"}]

        with pytest.raises(UnsupportedScenario, match="IPv6"):
            LoadBalancerUpgradeStrategy(fake_client).validate(record_for(fake_client, lb))

    @pytest.mark.parametrize("pool", [
        {"name": "kubernetes", "aks_managed": False},
        {"name": "backend", "aks_managed": True},
    ])
    def test_aks_backend_pool_is_unsupported(self, fake_client, pool):
        lb = fake_client.add_lb("lb1", backend_pools=[pool])

        with pytest.raises(UnsupportedScenario, match="AKS"):
            LoadBalancerUpgradeStrategy(fake_client).validate(record_for(fake_client, lb))


class TestPublicIPUpgrade:

    def test_execute_and_verify(self, fake_client, config):
        pip = fake_client.add_pip("pip1")
        strategy = PublicIPUpgradeStrategy(fake_client)

        outcome = strategy.verify(strategy.execute(record_for(fake_client, pip), config))

        assert outcome.passed
        assert fake_client.resources[pip]["public_ip_allocation_method"] == "Static"

    def test_gateway_attached_ip_is_unsupported(self, fake_client):
        pip = fake_client.add_pip(
            "pip1",
            ip_configuration_id="/subscriptions/s/resourceGroups/rg/providers/Microsoft.Network"
                                "/virtualNetworkGateways/gw1/ipConfigurations/default",
        )

        with pytest.raises(UnsupportedScenario):
            PublicIPUpgradeStrategy(fake_client).validate(record_for(fake_client, pip))

    def test_verify_reports_unexpected_sku_without_raising(self, fake_client, config):
        pip = fake_client.add_pip("pip1")
        fake_client.ignore_writes.add(pip)
        strategy = PublicIPUpgradeStrategy(fake_client)

        outcome = strategy.verify(strategy.execute(record_for(fake_client, pip), config))

        assert not outcome.passed
        assert outcome.observed == {"sku": "Basic"}

    def test_verify_read_failure_is_a_failed_outcome(self, fake_client, config):
        pip = fake_client.add_pip("pip1")
        strategy = PublicIPUpgradeStrategy(fake_client)
        handle = strategy.execute(record_for(fake_client, pip), config)
        fake_client.script_failure("fetch_resource", pip, ProviderError(ProviderErrorCode.TRANSIENT, "timeout"))

        outcome = strategy.verify(handle)

        assert not outcome.passed


class TestAvailabilitySetConversion:

    def test_execute_sets_aligned(self, fake_client, config):
        avset = fake_client.add_avset("avset1")
        strategy = AvailabilitySetConversionStrategy(fake_client)

        outcome = strategy.verify(strategy.execute(record_for(fake_client, avset), config))

        assert fake_client.write_calls == [("apply_sku_change", avset, "Aligned")]
        assert outcome.passed

    def test_too_many_fault_domains_is_unsupported(self, fake_client):
        avset = fake_client.add_avset("avset1", fault_domains=5)

        with pytest.raises(UnsupportedScenario):
            AvailabilitySetConversionStrategy(fake_client).validate(record_for(fake_client, avset))


class TestRegistry:

    def test_default_registry_covers_every_migration_type(self, fake_client):
        registry = create_default_registry(fake_client)

        expected = {t for t in MigrationType if t != MigrationType.UNSUPPORTED}
        assert set(registry.get_registered_types()) == expected
        assert isinstance(registry.resolve(MigrationType.PUBLIC_IP_UPGRADE), PublicIPUpgradeStrategy)

    def test_unregistered_type_raises_unsupported_scenario(self):
        with pytest.raises(UnsupportedScenario):
            StrategyRegistry().resolve(MigrationType.DISK_CONVERSION)

    def test_unsupported_type_cannot_be_registered(self, fake_client):
        class Bogus(PublicIPUpgradeStrategy):
            def get_migration_type(self):
                return MigrationType.UNSUPPORTED

        with pytest.raises(ValueError):
            StrategyRegistry().register_strategy(Bogus(fake_client))
