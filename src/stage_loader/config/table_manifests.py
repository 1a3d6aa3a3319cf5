"""
Table manifest registry loaded from YAML.

Expected layout::

    tables:
      orders:
        table: analytics.orders
        pk_columns: [order_id]
        strategy: merge
        columns: [order_id, customer_id, total]
        options: ["DELIMITER '\\t'", "GZIP"]
        staging_select: distinct
        data_pattern: "^orders/.*\\.tsv\\.gz$"

Validation is fail-fast: a malformed file or entry raises
:class:`ConfigurationError` naming the offending table.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Union

import structlog
import yaml
from pydantic import ValidationError

from stage_loader.io.loader.models import ConfigurationError, TableManifest

logger = structlog.get_logger(__name__)


def parse_table_manifest(name: str, raw: Mapping[str, Any]) -> TableManifest:
    """Validate one table entry, defaulting ``table`` to the entry name."""
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Table manifest '{name}' must be a mapping")
    data = dict(raw)
    data.setdefault("table", name)
    try:
        return TableManifest(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Table manifest '{name}' is invalid: {e}") from e


def load_table_manifests(config_path: Union[str, Path]) -> Dict[str, TableManifest]:
    """
    Load and validate every table manifest in ``config_path``.

    Raises:
        ConfigurationError: If the file is missing, not YAML, or any entry is invalid
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigurationError(f"Table manifests file not found: {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(
            "configuration.yaml_parse_error", config_path=str(config_file), error=str(e)
        )
        raise ConfigurationError(f"Invalid YAML in table manifests file: {e}") from e

    tables = raw_config.get("tables") if isinstance(raw_config, dict) else None
    if not isinstance(tables, dict) or not tables:
        raise ConfigurationError(
            f"Table manifests file {config_file} must define a non-empty 'tables' mapping"
        )

    manifests = {name: parse_table_manifest(name, raw) for name, raw in tables.items()}
    logger.info(
        "configuration.table_manifests.loaded",
        config_path=str(config_file),
        tables=sorted(manifests),
    )
    return manifests


def get_table_manifest(name: str, config_path: Union[str, Path]) -> TableManifest:
    """
    Get the validated manifest for a single table.

    Raises:
        ConfigurationError: If validation fails or the table is not declared
    """
    manifests = load_table_manifests(config_path)
    if name not in manifests:
        raise ConfigurationError(
            f"Table '{name}' not found in {config_path}; "
            f"known tables: {', '.join(sorted(manifests))}"
        )
    return manifests[name]
