# src/allocval/dataloader/config_loader.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from allocval.errors import ConfigError
from allocval.schemas.models import Config

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    @brief
    Loader responsible for reading and validating runtime configuration.

    @details
    Reads YAML from disk, checks it is a non-empty mapping, and validates it
    against the Pydantic `Config` schema. Every failure mode surfaces as a
    structured `ConfigError`. Without a path the defaults are returned, so
    the engine runs with no configuration file at all.
    """

    def load(self, path: Path | str | None = None) -> Config:
        """
        @brief
        Load and validate configuration from a YAML file.

        @params
            path : Path | str | None
                Path to config.yaml / config.yml; None means defaults.

        @returns
            Validated Config instance.

        @raises
            ConfigError
                Raised if the file is missing, malformed, or fails validation.
        """
        if path is None:
            logger.info("No configuration file given, using defaults.")
            return Config()

        # (1) Read and parse YAML configuration file
        data = self._read_yaml(Path(path))

        # (2) Validate mapping against Pydantic schema
        return self._validate(data)

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            raise ConfigError(
                message=f"Configuration file not found: {path}",
                source="ConfigLoader._read_yaml",
                suggested_action="Ensure config.yaml exists and the path is correct.",
            )

        if path.suffix.lower() not in {".yaml", ".yml"}:
            raise ConfigError(
                message=f"Invalid configuration file extension: {path.suffix}",
                source="ConfigLoader._read_yaml",
                suggested_action="Use .yaml or .yml extension for configuration files.",
            )

        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(
                message=f"YAML parsing failed: {e}",
                source="ConfigLoader._read_yaml",
                suggested_action="Fix YAML syntax/indentation.",
            ) from e
        except OSError as e:
            raise ConfigError(
                message=f"Unable to read configuration file: {e}",
                source="ConfigLoader._read_yaml",
                suggested_action="Check file permissions and path accessibility.",
            ) from e

        if data is None:
            raise ConfigError(
                message="Configuration file is empty.",
                source="ConfigLoader._read_yaml",
                suggested_action="Populate config.yaml or omit --config to use defaults.",
            )

        if not isinstance(data, Mapping):
            raise ConfigError(
                message="Configuration root must be a mapping (key: value pairs).",
                source="ConfigLoader._read_yaml",
                suggested_action="Use top-level keys such as 'checks:' and 'report:'.",
            )

        return dict(data)

    def _validate(self, data: dict[str, Any]) -> Config:
        try:
            return Config(**data)
        except ValidationError as e:
            raise ConfigError(
                message=f"Invalid configuration structure: {e}",
                source="ConfigLoader._validate",
                suggested_action=(
                    "Check field names and types under 'checks' and 'report'. "
                    "Remove unknown keys (extra fields are forbidden)."
                ),
            ) from e


__all__ = ["ConfigLoader"]
