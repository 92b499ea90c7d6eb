"""
tasksync configuration.

Settings come from a YAML file with ${VAR} environment variable substitution:

    database: ${DATABASE_URL}
    public_base_url: https://api.example.com
    success_redirect_url: https://app.example.com/settings/integrations
    log_level: INFO
    oauth:
      microsoft:
        client_id: ${MICROSOFT_CLIENT_ID}
        client_secret: ${MICROSOFT_CLIENT_SECRET}
        tenant: common
      google:
        client_id: ${GOOGLE_CLIENT_ID}
        client_secret: ${GOOGLE_CLIENT_SECRET}
    sync:
      timeout_seconds: 120
      interval_minutes: 15

OAuth apps left out of the file fall back to the MICROSOFT_* / GOOGLE_* env vars.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from .constants import (
    DEFAULT_SYNC_INTERVAL_MINUTES,
    DEFAULT_SYNC_TIMEOUT_SECONDS,
    GOOGLE,
    MICROSOFT,
)

logger = logging.getLogger(__name__)

# provider -> (client_id var, client_secret var, tenant var)
_OAUTH_ENV_MAP = {
    MICROSOFT: ("MICROSOFT_CLIENT_ID", "MICROSOFT_CLIENT_SECRET", "MICROSOFT_TENANT_ID"),
    GOOGLE: ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", None),
}


@dataclass
class OAuthAppConfig:
    client_id: str = ""
    client_secret: str = ""
    tenant: str = "common"
    redirect_uri: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class SyncConfig:
    timeout_seconds: float = DEFAULT_SYNC_TIMEOUT_SECONDS
    interval_minutes: float = DEFAULT_SYNC_INTERVAL_MINUTES
    include_completed: Optional[bool] = None


@dataclass
class Settings:
    database: Optional[str] = None
    public_base_url: Optional[str] = None
    success_redirect_url: Optional[str] = None
    log_level: str = "INFO"
    oauth: Dict[str, OAuthAppConfig] = field(default_factory=dict)
    sync: SyncConfig = field(default_factory=SyncConfig)

    def oauth_app(self, provider: str) -> OAuthAppConfig:
        """OAuth app config for a provider, falling back to env vars."""
        app_cfg = self.oauth.get(provider)
        if app_cfg and app_cfg.configured:
            return app_cfg
        return oauth_app_from_env(provider)


def oauth_app_from_env(provider: str) -> OAuthAppConfig:
    id_var, secret_var, tenant_var = _OAUTH_ENV_MAP[provider]
    return OAuthAppConfig(
        client_id=os.getenv(id_var, ""),
        client_secret=os.getenv(secret_var, ""),
        tenant=os.getenv(tenant_var, "common") if tenant_var else "common",
    )


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    import yaml

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    # Replace ${VAR} with environment variable values
    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


def settings_from_dict(cfg: dict) -> Settings:
    oauth_cfg = cfg.get("oauth") or {}
    oauth: Dict[str, OAuthAppConfig] = {}
    for provider in (MICROSOFT, GOOGLE):
        entry = oauth_cfg.get(provider)
        if not entry:
            continue
        oauth[provider] = OAuthAppConfig(
            client_id=str(entry.get("client_id", "")),
            client_secret=str(entry.get("client_secret", "")),
            tenant=str(entry.get("tenant", "common")),
            redirect_uri=entry.get("redirect_uri"),
        )

    sync_cfg = cfg.get("sync") or {}
    sync = SyncConfig(
        timeout_seconds=float(sync_cfg.get("timeout_seconds", DEFAULT_SYNC_TIMEOUT_SECONDS)),
        interval_minutes=float(sync_cfg.get("interval_minutes", DEFAULT_SYNC_INTERVAL_MINUTES)),
        include_completed=sync_cfg.get("include_completed"),
    )

    return Settings(
        database=cfg.get("database"),
        public_base_url=cfg.get("public_base_url"),
        success_redirect_url=cfg.get("success_redirect_url"),
        log_level=str(cfg.get("log_level", "INFO")).upper(),
        oauth=oauth,
        sync=sync,
    )


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from path (or $TASKSYNC_CONFIG). Missing file gives defaults."""
    path = path or os.getenv("TASKSYNC_CONFIG", "config.yaml")
    if not os.path.exists(path):
        logger.warning(f"Config not found: {path}. Using defaults and environment variables.")
        return Settings()
    settings = settings_from_dict(_load_config(path))
    logger.info(f"Settings loaded from {path}")
    return settings
