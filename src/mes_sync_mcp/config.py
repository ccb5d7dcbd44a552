"""
Configuration loading for MES Sync MCP.

Loads an optional YAML configuration file and environment variables.

Priority (highest first):
1. Environment variables (also read from a .env file)
2. config/sync.yaml
3. Built-in defaults

The Config object is only used at the server edge. It produces immutable
settings objects that are passed into the clients and the sync core.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LighthouseSettings:
    """Connection settings for the Lighthouse device/event API."""

    server_url: str = ""
    cluster_id: str = ""
    application_id: str = ""
    application_code: str = "PSM"
    secret_key: str = ""
    timeout: float = 300.0
    max_retries: int = 2
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    verify_ssl: bool = True

    @property
    def is_configured(self) -> bool:
        return bool(self.server_url and self.cluster_id and self.application_id)


@dataclass(frozen=True)
class ErpSettings:
    """Connection settings for the ERP schedule source."""

    base_url: str = ""
    user_id: str = ""
    password: str = ""
    login_path: str = "identity/Account/Login"
    schedule_path: str = "ERP/WorkCenterSchedule/GetSchedules"
    timeout: float = 30.0
    heartbeat_timeout: float = 5.0
    max_retries: int = 2
    retry_delay: float = 1.0
    retry_backoff: float = 2.0

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.user_id)


@dataclass(frozen=True)
class SyncSettings:
    """Behavioural settings for the reconciliation core."""

    group_title_prefix: str = "PLANNED_OUTPUT"
    item_category: str = "PLANNED_OUTPUT"
    annotation_type: str = "PLANNING"


class Config:
    """Configuration manager for MES Sync MCP."""

    def __init__(self, config_dir: Path | None = None):
        """Initialize configuration from YAML and environment.

        Args:
            config_dir: Path to config directory. Defaults to project config/.
        """
        load_dotenv()

        if config_dir is None:
            # __file__ = src/mes_sync_mcp/config.py -> project root is three levels up
            project_root = Path(__file__).parent.parent.parent
            config_dir = project_root / "config"

        self.config_dir = config_dir
        self._settings: dict[str, Any] = self._load_yaml("sync.yaml")

    def _load_yaml(self, filename: str) -> dict[str, Any]:
        """Load a YAML file from the config directory.

        Args:
            filename: Name of the YAML file to load.

        Returns:
            Parsed YAML content, or an empty dict if the file is absent.
        """
        filepath = self.config_dir / filename
        if not filepath.exists():
            logger.debug(f"No config file at {filepath}, using environment only")
            return {}

        try:
            with filepath.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse {filepath}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"{filepath} must contain a mapping at the top level")
            return {}
        return data

    def _section(self, name: str) -> dict[str, Any]:
        section = self._settings.get(name, {})
        return section if isinstance(section, dict) else {}

    @property
    def lighthouse(self) -> LighthouseSettings:
        """Lighthouse settings, environment taking precedence over YAML."""
        section = self._section("lighthouse")
        return LighthouseSettings(
            server_url=(
                os.getenv("LH_SERVER_URL") or section.get("server_url", "")
            ).rstrip("/"),
            cluster_id=os.getenv("LHT_CLUSTER_ID") or section.get("cluster_id", ""),
            application_id=(
                os.getenv("APPLICATION_ID") or section.get("application_id", "")
            ),
            application_code=(
                os.getenv("APPLICATION_CODE") or section.get("application_code", "PSM")
            ),
            secret_key=os.getenv("APPLICATION_SECRET_KEY", ""),
            timeout=float(section.get("timeout", 300.0)),
            max_retries=int(section.get("max_retries", 2)),
            retry_delay=float(section.get("retry_delay", 1.0)),
            retry_backoff=float(section.get("retry_backoff", 2.0)),
            verify_ssl=bool(section.get("verify_ssl", True)),
        )

    @property
    def erp(self) -> ErpSettings:
        """ERP settings, environment taking precedence over YAML."""
        section = self._section("erp")
        base_url = os.getenv("ERP_BASE_URL") or section.get("base_url", "")
        if base_url and not base_url.endswith("/"):
            base_url += "/"
        return ErpSettings(
            base_url=base_url,
            user_id=os.getenv("ERP_USER_ID") or section.get("user_id", ""),
            password=os.getenv("ERP_PASSWORD", ""),
            login_path=section.get("login_path", "identity/Account/Login"),
            schedule_path=section.get(
                "schedule_path", "ERP/WorkCenterSchedule/GetSchedules"
            ),
            timeout=float(section.get("timeout", 30.0)),
            heartbeat_timeout=float(section.get("heartbeat_timeout", 5.0)),
            max_retries=int(section.get("max_retries", 2)),
            retry_delay=float(section.get("retry_delay", 1.0)),
            retry_backoff=float(section.get("retry_backoff", 2.0)),
        )

    @property
    def sync(self) -> SyncSettings:
        """Reconciliation settings from YAML."""
        section = self._section("sync")
        return SyncSettings(
            group_title_prefix=section.get("group_title_prefix", "PLANNED_OUTPUT"),
            item_category=section.get("item_category", "PLANNED_OUTPUT"),
            annotation_type=section.get("annotation_type", "PLANNING"),
        )


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        The Config singleton instance.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from files and environment.

    Returns:
        Fresh Config instance.
    """
    global _config
    _config = Config()
    return _config
