"""Kusto client configuration from YAML file.

Loads the ``kusto:`` section of config/config.yaml:
- Cluster and ingestion endpoints
- Default database
- Query / command timeouts
- Ingestion resource refresh and throttling retry settings

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files,
and KUSTO_* environment variables override individual settings.
"""

import json
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from core.resilience.retry import RetryConfig

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"


def ingest_url_for(cluster_url: str) -> str:
    """Data-management endpoint for a cluster: ``https://ingest-<host>``."""
    parsed = urlparse(cluster_url)
    host = parsed.netloc or parsed.path
    if host.startswith("ingest-"):
        return f"{parsed.scheme or 'https'}://{host}"
    return f"{parsed.scheme or 'https'}://ingest-{host}"


@dataclass
class KustoConfig:
    """Kusto connection configuration.

    Configuration structure:
        kusto:
          cluster_url: https://mycluster.westus.kusto.windows.net
          ingest_cluster_url: ...     # Optional, derived from cluster_url
          database: MyDatabase
          timeouts: {...}             # Query/command client timeouts (seconds)
          ingest:
            resource_refresh_minutes: 60
            throttle_retry: {...}

    All timing values in seconds unless otherwise noted.
    """

    cluster_url: str
    ingest_cluster_url: str = ""
    database: str = ""

    # Client-side request timeouts
    query_timeout_seconds: float = 270.0  # 4.5 minutes
    command_timeout_seconds: float = 630.0  # 10.5 minutes
    server_timeout_padding_seconds: float = 30.0

    # Ingestion resource management
    resource_refresh_minutes: float = 60.0
    throttle_retry_attempts: int = 4
    throttle_retry_base_seconds: float = 1.0
    throttle_retry_max_jitter_seconds: float = 1.0

    # Tracing headers (x-ms-app / x-ms-user)
    application: Optional[str] = None
    user: Optional[str] = None

    def __post_init__(self) -> None:
        self.cluster_url = self.cluster_url.rstrip("/")
        if not self.ingest_cluster_url and self.cluster_url:
            self.ingest_cluster_url = ingest_url_for(self.cluster_url)
        self.ingest_cluster_url = self.ingest_cluster_url.rstrip("/")

    def validate(self) -> None:
        """Validate required fields and numeric ranges."""
        if not self.cluster_url:
            raise ValueError(
                "Kusto cluster_url is required. "
                "Set in config.yaml under 'kusto:' or via KUSTO_CLUSTER_URL env var."
            )
        if not self.cluster_url.startswith(("https://", "http://")):
            raise ValueError(f"kusto.cluster_url must be an http(s) URL, got '{self.cluster_url}'")

        for key in (
            "query_timeout_seconds",
            "command_timeout_seconds",
            "resource_refresh_minutes",
        ):
            value = getattr(self, key)
            if value <= 0:
                raise ValueError(f"kusto: {key} must be > 0, got {value}")

        if self.throttle_retry_attempts < 1:
            raise ValueError(
                f"kusto: throttle_retry_attempts must be >= 1, got {self.throttle_retry_attempts}"
            )
        if self.throttle_retry_base_seconds < 0 or self.throttle_retry_max_jitter_seconds < 0:
            raise ValueError("kusto: throttle retry delays must be >= 0")

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "KustoConfig":
        """Load Kusto configuration from config.yaml and environment variables.

        Configuration priority (highest to lowest):
        1. Environment variables
        2. Config file (under 'kusto:' key)
        3. Dataclass defaults

        Optional env var overrides:
            KUSTO_CLUSTER_URL: Engine endpoint
            KUSTO_INGEST_CLUSTER_URL: Data-management endpoint
            KUSTO_DATABASE: Default database
            KUSTO_QUERY_TIMEOUT: Query client timeout (default: 270)
            KUSTO_COMMAND_TIMEOUT: Command client timeout (default: 630)
            KUSTO_RESOURCE_REFRESH_MINUTES: Ingestion resource refresh period (default: 60)
            KUSTO_APPLICATION / KUSTO_USER: Tracing headers
        """
        resolved_path = config_path or DEFAULT_CONFIG_FILE
        if config_path is not None and not resolved_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {resolved_path}")

        logger.debug("Loading Kusto configuration", extra={"config_path": str(resolved_path)})
        yaml_data = _expand_env_vars(load_yaml(resolved_path))

        kusto_data = yaml_data.get("kusto", {})
        timeouts = kusto_data.get("timeouts", {})
        ingest_data = kusto_data.get("ingest", {})
        throttle_data = ingest_data.get("throttle_retry", {})

        config = cls(
            cluster_url=os.getenv("KUSTO_CLUSTER_URL", kusto_data.get("cluster_url", "")),
            ingest_cluster_url=os.getenv(
                "KUSTO_INGEST_CLUSTER_URL", kusto_data.get("ingest_cluster_url", "")
            ),
            database=os.getenv("KUSTO_DATABASE", kusto_data.get("database", "")),
            query_timeout_seconds=float(
                os.getenv("KUSTO_QUERY_TIMEOUT", timeouts.get("query_seconds", 270.0))
            ),
            command_timeout_seconds=float(
                os.getenv("KUSTO_COMMAND_TIMEOUT", timeouts.get("command_seconds", 630.0))
            ),
            server_timeout_padding_seconds=float(
                timeouts.get("server_timeout_padding_seconds", 30.0)
            ),
            resource_refresh_minutes=float(
                os.getenv(
                    "KUSTO_RESOURCE_REFRESH_MINUTES",
                    ingest_data.get("resource_refresh_minutes", 60.0),
                )
            ),
            throttle_retry_attempts=int(throttle_data.get("max_attempts", 4)),
            throttle_retry_base_seconds=float(throttle_data.get("base_delay_seconds", 1.0)),
            throttle_retry_max_jitter_seconds=float(throttle_data.get("max_jitter_seconds", 1.0)),
            application=os.getenv("KUSTO_APPLICATION", kusto_data.get("application")),
            user=os.getenv("KUSTO_USER", kusto_data.get("user")),
        )

        config.validate()
        logger.info(
            "Kusto configuration loaded",
            extra={"cluster": config.cluster_url, "database": config.database},
        )
        return config

    @property
    def resource_refresh_period(self) -> timedelta:
        return timedelta(minutes=self.resource_refresh_minutes)

    def throttle_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.throttle_retry_attempts,
            base_delay=self.throttle_retry_base_seconds,
            max_jitter=self.throttle_retry_max_jitter_seconds,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _cli_main() -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(description="Kusto client configuration tool")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format instead of human-readable",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    try:
        config = KustoConfig.load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"✗ Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(config.to_dict(), indent=2))
    else:
        print("✓ Configuration validation passed")
        print(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False))
    return 0


if __name__ == "__main__":
    sys.exit(_cli_main())
