"""
ChunkCopy Core Configuration

Resolves migration settings from explicit overrides, the process environment
and .env files, in that order of precedence.
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv, find_dotenv
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from chunkcopy.core.exceptions import ConfigurationError
from chunkcopy.core.naming import get_external_id_column_name
from chunkcopy.core.types import MigrationConfig
from chunkcopy.chunkcopy_utils import variables

DEFAULT_SOURCE_SCHEMA = "cache"
DEFAULT_TARGET_SCHEMA = "salesforce"
DEFAULT_BULK_LIMIT = 10000
DEFAULT_ORDER_BY = "id"
DEFAULT_MONITOR_INTERVAL = 10
DEFAULT_POOL_SIZE = 5

# field name -> environment variable
ENV_VARS = {
    'database_url': 'DATABASE_URL',
    'source_table': 'SOURCE_TABLE',
    'target_table': 'TARGET_TABLE',
    'source_schema': 'SOURCE_SCHEMA',
    'target_schema': 'TARGET_SCHEMA',
    'bulk_limit': 'BULK_LIMIT',
    'workers': 'NUMBER_OF_WORKERS',
    'order_by': 'ORDER_BY_COLUMN',
    'external_id_column': 'EXTERNAL_ID_COLUMN',
    'monitor_interval': 'MONITOR_INTERVAL',
    'pool_size': 'POOL_SIZE',
    'sslmode': 'DATABASE_SSLMODE',
    'log_level': 'LOG_LEVEL',
    'log_file': 'LOG_FILE',
}


def load_env_files(env_file: Optional[str] = None) -> None:
    """Load .env files without overriding variables already set."""
    if env_file:
        if not os.path.exists(env_file):
            raise ConfigurationError(f"Environment file '{env_file}' not found")
        load_dotenv(env_file, override=False)
        return

    local_env = find_dotenv(usecwd=True)
    if local_env:
        load_dotenv(local_env, override=False)
    if os.path.exists(variables.ENV_FILE):
        load_dotenv(variables.ENV_FILE, override=False)


def _resolve(name: str, overrides: Dict[str, Any]) -> Any:
    value = overrides.get(name)
    if value is None:
        value = os.getenv(ENV_VARS[name])
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return None
    return value


def _parse_positive_int(value: Any, name: str, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{ENV_VARS[name]} must be an integer, got '{value}'")
    if parsed <= 0:
        raise ConfigurationError(f"{ENV_VARS[name]} must be greater than zero, got {parsed}")
    return parsed


def default_worker_count() -> int:
    return os.cpu_count() or 1


def load_migration_config(
    overrides: Optional[Dict[str, Any]] = None,
    env_file: Optional[str] = None,
    require_tables: bool = True
) -> MigrationConfig:
    """
    Build a MigrationConfig.

    Args:
        overrides: Explicit values keyed by MigrationConfig field name; None values are ignored
        env_file: Optional .env file to load instead of the default locations
        require_tables: Whether source and target tables must be set

    Returns:
        Resolved MigrationConfig

    Raises:
        ConfigurationError: If a required setting is missing or a value is invalid
    """
    overrides = overrides or {}
    load_env_files(env_file)

    database_url = _resolve('database_url', overrides)
    if not database_url:
        raise ConfigurationError(f"{ENV_VARS['database_url']} is not defined")
    try:
        make_url(database_url)
    except ArgumentError as e:
        raise ConfigurationError(f"{ENV_VARS['database_url']} is not a valid database URL", str(e))

    source_table = _resolve('source_table', overrides)
    target_table = _resolve('target_table', overrides)
    if require_tables:
        if not source_table:
            raise ConfigurationError(f"{ENV_VARS['source_table']} is not defined")
        if not target_table:
            raise ConfigurationError(f"{ENV_VARS['target_table']} is not defined")

    monitor_interval = _resolve('monitor_interval', overrides)
    try:
        monitor_interval = float(monitor_interval) if monitor_interval is not None else float(DEFAULT_MONITOR_INTERVAL)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{ENV_VARS['monitor_interval']} must be a number, got '{monitor_interval}'")
    if monitor_interval <= 0:
        raise ConfigurationError(f"{ENV_VARS['monitor_interval']} must be greater than zero")

    return MigrationConfig(
        database_url=database_url,
        source_table=(source_table or '').lower(),
        target_table=(target_table or '').lower(),
        source_schema=(_resolve('source_schema', overrides) or DEFAULT_SOURCE_SCHEMA).lower(),
        target_schema=(_resolve('target_schema', overrides) or DEFAULT_TARGET_SCHEMA).lower(),
        bulk_limit=_parse_positive_int(_resolve('bulk_limit', overrides), 'bulk_limit', DEFAULT_BULK_LIMIT),
        workers=_parse_positive_int(_resolve('workers', overrides), 'workers', default_worker_count()),
        order_by=_resolve('order_by', overrides) or DEFAULT_ORDER_BY,
        external_id_column=_resolve('external_id_column', overrides) or get_external_id_column_name(),
        monitor_interval=monitor_interval,
        pool_size=_parse_positive_int(_resolve('pool_size', overrides), 'pool_size', DEFAULT_POOL_SIZE),
        sslmode=_resolve('sslmode', overrides),
        log_level=(_resolve('log_level', overrides) or 'INFO').upper(),
        log_file=_resolve('log_file', overrides),
    )


def mask_url(database_url: str) -> str:
    """Render a database URL with the password hidden."""
    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except ArgumentError:
        return '<invalid database url>'
