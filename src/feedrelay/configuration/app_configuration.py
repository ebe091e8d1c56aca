from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from feedrelay.configuration.classifier_settings import ClassifierSettings
from feedrelay.configuration.dispatch_settings import DispatchSettings
from feedrelay.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties per section. Uses fcntl file locks for safe concurrent
    access across processes. A missing or malformed file yields the defaults.
    """

    def __init__(self, config_path: Path = CONFIG_PATH) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            logger.error("[APP CONFIGURATION] Config %s is not a mapping; using defaults.", self.config_path)
            return {}
        return data

    def section(self, name: str) -> Dict[str, Any]:
        value = self._data.get(name, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    # --------------------------
    # Provider
    # --------------------------
    @property
    def provider_name(self) -> str:
        """Prefix of every post ID; changing it invalidates dedup history."""
        return str(self.section("provider").get("name") or "instagram")

    @property
    def provider_display_name(self) -> str:
        return str(self.section("provider").get("display_name") or "Instagram")

    # --------------------------
    # Webhook / rate limiting
    # --------------------------
    @property
    def signature_header(self) -> str:
        return str(self.section("webhook").get("signature_header") or "X-Webhook-Signature")

    @property
    def rate_limit_window_seconds(self) -> float:
        return float(self.section("rate_limit").get("window_seconds", 60))

    @property
    def rate_limit_max_requests(self) -> int:
        return int(self.section("rate_limit").get("max_requests", 30))

    @property
    def trust_forwarded_for(self) -> bool:
        return bool(self.section("rate_limit").get("trust_forwarded_for", False))

    @property
    def max_posts_per_feed_per_hour(self) -> int:
        """New posts relayed per feed and hour; 0 disables the throttle."""
        return int(self.section("rate_limit").get("max_posts_per_feed_per_hour", 10))

    # --------------------------
    # Normalizer / manual submissions
    # --------------------------
    @property
    def title_max_length(self) -> int:
        return int(self.section("normalizer").get("title_max_length", 100))

    @property
    def manual_default_author(self) -> str:
        return str(self.section("manual").get("default_author") or "")

    @property
    def manual_allowed_domains(self) -> List[str]:
        """Hosts accepted in manual URLs; an empty list accepts any host."""
        domains = self.section("manual").get("allowed_domains") or []
        if not isinstance(domains, list):
            return []
        return [str(d).lower() for d in domains if d]

    # --------------------------
    # Sections wrapped in helpers
    # --------------------------
    @property
    def classifier(self) -> ClassifierSettings:
        return ClassifierSettings(self.section("classifier"))

    @property
    def dispatch(self) -> DispatchSettings:
        return DispatchSettings(self.section("dispatch"), self.section("age_gate"))

    # --------------------------
    # Storage / server
    # --------------------------
    @property
    def database_path(self) -> Path:
        return Path(self.section("database").get("path") or "data/feedrelay.db")

    @property
    def retention_days(self) -> int:
        return int(self.section("database").get("retention_days", 90))

    @property
    def server_host(self) -> str:
        return str(self.section("server").get("host") or "0.0.0.0")

    @property
    def server_port(self) -> int:
        return int(self.section("server").get("port", 8080))
