"""Authentication manager for Azure services"""

import os
import subprocess
from typing import Dict, List, Any

try:
    from azure.identity import (
        DefaultAzureCredential,
        AzureCliCredential,
        EnvironmentCredential
    )
    from azure.mgmt.resource import SubscriptionClient
    from azure.mgmt.compute import ComputeManagementClient
    from azure.mgmt.network import NetworkManagementClient
    from azure.core.exceptions import ClientAuthenticationError
except ImportError as e:
    raise ImportError(f"Required Azure SDK packages not installed: {e}")

from ..utils.logger import setup_logger


class AuthenticationManager:
    """Manages Azure authentication and client creation"""

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)
        self.credential = None
        self._subscription_cache: Dict[str, str] = {}
        self._client_cache: Dict[str, Dict[str, Any]] = {}

    def authenticate(self):
        """Authenticate with Azure, trying environment, CLI, then the default chain"""

        if all(os.getenv(var) for var in ['AZURE_TENANT_ID', 'AZURE_CLIENT_ID', 'AZURE_CLIENT_SECRET']):
            try:
                self.credential = EnvironmentCredential()
                self._test_credential()
                self.logger.info("Authenticated using environment variables")
                return self.credential
            except Exception as e:
                self.logger.debug(f"Environment credential failed: {e}")

        try:
            self.credential = AzureCliCredential()
            self._test_credential()
            self.logger.info("Authenticated using Azure CLI")
            return self.credential
        except Exception as e:
            self.logger.debug(f"Azure CLI authentication failed: {e}")

        try:
            self.credential = DefaultAzureCredential()
            self._test_credential()
            self.logger.info("Authenticated using default credential chain")
            return self.credential
        except Exception as e:
            self.logger.error(f"Default authentication failed: {e}")

        self.credential = None
        raise ClientAuthenticationError("Unable to authenticate with Azure")

    def get_credential(self):
        """Get the current credential, authenticating if needed"""
        if not self.credential:
            self.authenticate()
        return self.credential

    def _test_credential(self):
        """Test the credential by listing subscriptions"""
        subscription_client = SubscriptionClient(self.credential)
        next(iter(subscription_client.subscriptions.list()), None)

    def get_accessible_subscriptions(self) -> List[str]:
        """Get list of enabled subscription IDs"""

        try:
            subscription_client = SubscriptionClient(self.get_credential())
            subscription_ids = []
            for sub in subscription_client.subscriptions.list():
                if sub.state == 'Enabled':
                    subscription_ids.append(sub.subscription_id)
                    self._subscription_cache[sub.subscription_id] = sub.display_name
                    self.logger.debug(f"Found subscription: {sub.display_name} ({sub.subscription_id})")

            self.logger.info(f"Found {len(subscription_ids)} enabled subscriptions")
            return subscription_ids

        except Exception as e:
            self.logger.error(f"Failed to list subscriptions: {e}")
            return self._get_subscriptions_from_cli()

    def _get_subscriptions_from_cli(self) -> List[str]:
        """Fallback: get subscriptions using Azure CLI"""

        try:
            result = subprocess.run(
                ['az', 'account', 'list', '--query', '[?state==`Enabled`].id', '-o', 'tsv'],
                capture_output=True, text=True, check=True
            )
        except (OSError, subprocess.CalledProcessError) as e:
            self.logger.error(f"Azure CLI failed: {e}")
            raise RuntimeError(
                "Unable to determine subscriptions. Please ensure Azure CLI is installed and you're logged in."
            ) from e

        subscription_ids = [sub.strip() for sub in result.stdout.splitlines() if sub.strip()]
        self.logger.info(f"Found {len(subscription_ids)} subscriptions via Azure CLI")
        return subscription_ids

    def get_clients_for_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Get Azure service clients for a subscription"""

        if subscription_id in self._client_cache:
            return self._client_cache[subscription_id]

        credential = self.get_credential()
        clients = {
            'compute': ComputeManagementClient(credential, subscription_id),
            'network': NetworkManagementClient(credential, subscription_id),
        }

        self._client_cache[subscription_id] = clients
        self.logger.debug(f"Created clients for subscription {subscription_id}")
        return clients

    def get_subscription_name(self, subscription_id: str) -> str:
        """Get subscription display name"""
        return self._subscription_cache.get(subscription_id, subscription_id[:8] + "...")
