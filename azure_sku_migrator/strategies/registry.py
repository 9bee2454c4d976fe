"""Registry mapping migration types to strategies"""

from typing import Dict, List

from ..core.errors import UnsupportedScenario
from ..core.interfaces import IMigrationStrategy, IProviderClient
from ..core.models import MigrationType
from ..utils.logger import setup_logger
from .availability_set_strategy import AvailabilitySetConversionStrategy
from .disk_strategy import DiskConversionStrategy
from .load_balancer_strategy import LoadBalancerUpgradeStrategy
from .public_ip_strategy import PublicIPUpgradeStrategy


class StrategyRegistry:
    """Registry for managing migration strategies"""

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)
        self._strategies: Dict[MigrationType, IMigrationStrategy] = {}

    def register_default_strategies(self, client: IProviderClient) -> "StrategyRegistry":
        """Register the built-in strategies bound to ``client``"""
        default_strategies = [
            AvailabilitySetConversionStrategy(client),
            DiskConversionStrategy(client),
            LoadBalancerUpgradeStrategy(client),
            PublicIPUpgradeStrategy(client),
        ]

        for strategy in default_strategies:
            self.register_strategy(strategy)
        return self

    def register_strategy(self, strategy: IMigrationStrategy) -> None:
        """Register a strategy, replacing any previous one for the same type"""
        migration_type = strategy.get_migration_type()
        if migration_type == MigrationType.UNSUPPORTED:
            raise ValueError("Cannot register a strategy for the Unsupported migration type")
        if migration_type in self._strategies:
            self.logger.warning(f"Replacing strategy for {migration_type.value}")
        self._strategies[migration_type] = strategy
        self.logger.debug(f"Registered strategy: {strategy.get_strategy_name()} for {migration_type.value}")

    def resolve(self, migration_type: MigrationType) -> IMigrationStrategy:
        """Return the strategy for ``migration_type``"""
        try:
            return self._strategies[migration_type]
        except KeyError:
            raise UnsupportedScenario(
                f"No migration strategy registered for {migration_type.value}"
            ) from None

    def get_registered_types(self) -> List[MigrationType]:
        return list(self._strategies)


def create_default_registry(client: IProviderClient) -> StrategyRegistry:
    return StrategyRegistry().register_default_strategies(client)
