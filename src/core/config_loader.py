#!/usr/bin/env -S python3 -B -u
"""
Configuration loader for fasttrace.

Loads the persisted user preference and geo provider token. When the
configuration is missing or incomplete a default one is generated and
written back before the session proceeds.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional

from fasttrace.core.exceptions import ConfigurationError
from fasttrace.core.models import (
    DEFAULT_DATA_ORIGIN,
    DEFAULT_TABLE_PAUSE,
    FastTraceConfig,
    Preference,
)
from fasttrace.core.structured_logging import get_logger


CONFIG_ENV = 'FASTTRACE_CONF'
CONFIG_FILENAME = 'fasttrace.yaml'


def default_config_data() -> Dict[str, Any]:
    """Default configuration written by auto-generation."""
    return {
        'data_origin': DEFAULT_DATA_ORIGIN,
        'no_rdns': False,
        'table_print_default': False,
        'always_route_path': False,
        'token': '',
        'table_pause': DEFAULT_TABLE_PAUSE,
    }


def config_search_paths() -> List[Path]:
    """
    Configuration file locations in order of precedence.

    1. Environment variable FASTTRACE_CONF (if set)
    2. ~/.fasttrace.yaml (user's home directory)
    3. ./fasttrace.yaml (current directory)
    """
    config_files = []

    env_config = os.environ.get(CONFIG_ENV)
    if env_config:
        config_files.append(Path(env_config))

    config_files.extend([
        Path.home() / f'.{CONFIG_FILENAME}',
        Path(f'./{CONFIG_FILENAME}')
    ])
    return config_files


def _to_bool(value: Any, key: str, config_file: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', 'yes', 'on', '1'):
        return True
    if isinstance(value, str) and value.lower() in ('false', 'no', 'off', '0', ''):
        return False
    raise ConfigurationError(f"Option '{key}' must be a boolean, got {value!r}", config_file=config_file)


def config_from_dict(data: Dict[str, Any], config_file: str = "<memory>") -> FastTraceConfig:
    """Build a FastTraceConfig from a mapping, filling in defaults."""
    merged = default_config_data()
    merged.update({k: v for k, v in data.items() if v is not None})

    try:
        table_pause = float(merged['table_pause'])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Option 'table_pause' must be a number, got {merged['table_pause']!r}",
            config_file=config_file, cause=e
        ) from e
    if table_pause < 0:
        raise ConfigurationError("Option 'table_pause' must not be negative", config_file=config_file)

    preference = Preference(
        data_origin=str(merged['data_origin'] or ''),
        no_rdns=_to_bool(merged['no_rdns'], 'no_rdns', config_file),
        table_print_default=_to_bool(merged['table_print_default'], 'table_print_default', config_file),
        always_route_path=_to_bool(merged['always_route_path'], 'always_route_path', config_file),
    )
    return FastTraceConfig(
        preference=preference,
        token=str(merged['token'] or ''),
        table_pause=table_pause,
    )


class PreferenceStore:
    """
    Persisted configuration store backed by a YAML file.

    Attributes:
        path: Explicit configuration file, or None to use the search paths
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self.logger = get_logger(__name__)

    def candidates(self) -> List[Path]:
        if self.path:
            return [self.path]
        return config_search_paths()

    def read(self) -> FastTraceConfig:
        """
        Read the first available configuration file.

        Raises:
            ConfigurationError: If no file exists or it cannot be parsed
        """
        for config_file in self.candidates():
            if not config_file.exists():
                continue
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Failed to read configuration: {e}",
                    config_file=str(config_file), cause=e
                ) from e

            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    "Configuration file must contain a mapping",
                    config_file=str(config_file)
                )

            self.logger.debug("Loaded configuration", config_file=str(config_file))
            return config_from_dict(file_config, str(config_file))

        raise ConfigurationError("No configuration file found")

    def auto_generate(self) -> FastTraceConfig:
        """
        Write the default configuration and return it.

        Raises:
            ConfigurationError: If the default configuration cannot be persisted
        """
        target = self.candidates()[0]
        data = default_config_data()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to write default configuration: {e}",
                config_file=str(target), cause=e
            ) from e

        self.logger.info(f"Generated default configuration at {target}")
        return config_from_dict(data, str(target))

    def load(self) -> FastTraceConfig:
        """
        Load the configuration, generating a default one when needed.

        A configuration that cannot be read, or that has no data origin,
        is replaced by a freshly generated default.
        """
        try:
            config = self.read()
        except ConfigurationError as e:
            self.logger.debug(f"Falling back to default configuration: {e.message}")
            return self.auto_generate()

        if not config.preference.data_origin:
            self.logger.debug("Configuration has no data origin, regenerating defaults")
            return self.auto_generate()

        return config
