"""
Quote Engine secrets and settings
=================================
Reads configuration from HashiCorp Vault, falling back to the process
environment.

Usage:
    from utils.vault import secrets

    api_key = secrets.get("gemini_api_key", default="")
    secrets.refresh()
"""

import os
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("QuoteEngine")

# Vault is optional; without hvac only the environment is consulted
try:
    import hvac

    VAULT_AVAILABLE = True
except ImportError:
    VAULT_AVAILABLE = False
    logger.info("hvac not installed - using environment variables only")


class VaultClient:
    """
    Lazily authenticated Vault reader.

    All settings for an environment live in one KV v2 secret at
    secret/quotecmp/{env}. Keys are matched case-insensitively.
    """

    def __init__(self):
        self.vault_addr = (os.getenv("VAULT_ADDR") or "").strip()
        self.env = os.getenv("QUOTECMP_ENV", "dev")

        self._client: Optional["hvac.Client"] = None
        self._cache: Dict[str, Any] = {}
        self._connection_attempted = False

    def _get_client(self) -> Optional["hvac.Client"]:
        if not VAULT_AVAILABLE or not self.vault_addr:
            return None
        if self._client is not None or self._connection_attempted:
            return self._client

        self._connection_attempted = True
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")
        token = os.getenv("VAULT_TOKEN")

        try:
            client = hvac.Client(url=self.vault_addr)
            if role_id and secret_id:
                client.auth.approle.login(role_id=role_id, secret_id=secret_id)
                logger.info(f"Authenticated to Vault via AppRole for {self.env}")
            elif token:
                client.token = token
                logger.info(f"Authenticated to Vault via token for {self.env}")
            else:
                logger.warning("VAULT_ADDR set but no Vault credentials configured")
                return None
            self._client = client
        except Exception as e:
            logger.warning(f"Could not connect to Vault: {e}")

        return self._client

    def secret_path(self) -> str:
        return f"quotecmp/{self.env}"

    def _fetch_from_vault(self) -> Dict[str, Any]:
        client = self._get_client()
        if client is None:
            return {}

        try:
            response = client.secrets.kv.v2.read_secret_version(
                path=self.secret_path(), mount_point="secret"
            )
            data = response["data"]["data"]
            logger.debug(f"Fetched {len(data)} settings from Vault ({self.secret_path()})")
            return data
        except Exception as e:
            logger.warning(f"Could not fetch settings from Vault: {e}")
            return {}

    @staticmethod
    def _env_fallback(key: str) -> Optional[str]:
        for candidate in (key, key.upper(), key.lower()):
            v = os.getenv(candidate)
            if v:
                return v
        return None

    def get(self, key: str, default: Optional[str] = None) -> str:
        """
        Look `key` up in Vault, then in the environment.

        Raises:
            KeyError: If the key is found nowhere and no default is given.
        """
        if not self._cache:
            self._cache = self._fetch_from_vault()

        key_lower = key.lower()
        for k, v in self._cache.items():
            if k.lower() == key_lower:
                return v

        env_val = self._env_fallback(key)
        if env_val is not None:
            return env_val

        if default is not None:
            return default
        raise KeyError(f"Setting '{key}' not found (Vault or env)")

    def refresh(self) -> None:
        """Drop cached values and re-read Vault."""
        self._cache = self._fetch_from_vault()
        logger.info(f"Settings refreshed for {self.env}")


secrets = VaultClient()
