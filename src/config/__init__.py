"""Configuration loading for the Kusto clients.

Configuration is read from the ``kusto:`` section of config/config.yaml,
with ${VAR} expansion and KUSTO_* environment variable overrides.

Usage Examples
--------------

    >>> from config import KustoConfig
    >>> config = KustoConfig.load_config()
    >>> config.ingest_cluster_url
    'https://ingest-help.kusto.windows.net'

Custom config path:
    >>> from pathlib import Path
    >>> config = KustoConfig.load_config(Path("/custom/path/config.yaml"))
"""

from config.config import (
    DEFAULT_CONFIG_FILE,
    KustoConfig,
    ingest_url_for,
    load_yaml,
)

__all__ = [
    "KustoConfig",
    "load_yaml",
    "ingest_url_for",
    "DEFAULT_CONFIG_FILE",
]
