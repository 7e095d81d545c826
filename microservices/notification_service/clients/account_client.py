"""
Account Service Client

HTTP client for synchronous communication with account_service
Resolves the email address an order notification is addressed to
"""

import httpx
import logging
from typing import Optional, Dict, Any

from core.config import get_settings

logger = logging.getLogger(__name__)


class AccountServiceClient:
    """Client for account_service HTTP API"""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0, transport=None):
        """
        Initialize account service client

        Args:
            base_url: Account service base URL (defaults to ACCOUNT_SERVICE_URL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.base_url = (base_url or get_settings().commerce.account_service_url).rstrip('/')

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "X-Service-Name": "notification_service"  # Internal service identifier
            }
        )

        logger.info(f"AccountServiceClient initialized with base_url: {self.base_url}")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_account_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get user account profile

        Args:
            user_id: User ID

        Returns:
            Profile dict (with ``email``) or None if not found or unreachable
        """
        try:
            response = await self.client.get(f"/api/v1/accounts/profile/{user_id}")

            if response.status_code == 200:
                return response.json()
            elif response.status_code == 404:
                logger.warning(f"User profile not found: {user_id}")
                return None
            else:
                logger.error(f"Failed to get user profile {user_id}: {response.status_code}")
                return None

        except httpx.HTTPError as e:
            logger.error(f"Error fetching user profile {user_id}: {e}")
            return None
