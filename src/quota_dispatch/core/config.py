# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized configuration loader for the dispatch core.

This module provides a ConfigLoader class that handles all configuration
parsing from:
1. System defaults (from config/defaults.py)
2. Keyword overrides supplied by the host application
3. Environment variables (ALWAYS override keyword overrides)

It also collects the credential list (and the optional priority credential)
from the environment.
"""

import os
import logging
from dataclasses import fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .types import DispatchConfig, QuotaResetMode
from .constants import (
    DEFAULT_CREDENTIAL_ENV_PREFIX,
    ENV_PREFIX,
    ENV_CONFIG_FIELDS,
    ENV_PRIORITY_SUFFIX,
    TRUTHY_VALUES,
)

lib_logger = logging.getLogger("quota_dispatch")


class ConfigLoader:
    """
    Centralized configuration loader.

    Parses all configuration from:
    1. System defaults
    2. Keyword overrides
    3. Environment variables (ALWAYS win)

    Usage:
        loader = ConfigLoader()
        config = loader.load_config(base_delay=2.0)
        credentials, priority = loader.load_credentials()
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the ConfigLoader.

        Args:
            environ: Mapping to read variables from. Defaults to os.environ.
        """
        self._environ = environ if environ is not None else os.environ
        self._cache: Optional[DispatchConfig] = None

    def load_config(
        self,
        force_reload: bool = False,
        **overrides: Any,
    ) -> DispatchConfig:
        """
        Load the complete dispatch configuration.

        Configuration is loaded in this order (later overrides earlier):
        1. System defaults
        2. Keyword overrides
        3. Environment variables (ALWAYS win)

        Args:
            force_reload: If True, bypass cache and reload
            **overrides: DispatchConfig field values

        Returns:
            Complete DispatchConfig
        """
        if not force_reload and not overrides and self._cache is not None:
            return self._cache

        values = self._get_system_defaults()
        values = self._apply_overrides(values, overrides)
        values = self._apply_env_overrides(values)

        config = DispatchConfig(**values)
        if not overrides:
            self._cache = config
        return config

    def load_credentials(
        self,
        prefix: str = DEFAULT_CREDENTIAL_ENV_PREFIX,
    ) -> Tuple[List[str], Optional[str]]:
        """
        Collect credentials from the environment.

        Sources, in order:
        - {PREFIX}S: comma-separated list
        - {PREFIX}: a single credential
        - {PREFIX}_1, {PREFIX}_2, ...: numbered, stops at the first gap
        - {PREFIX}_PRIORITY: the optional priority credential

        Values are whitespace-trimmed; duplicates keep their first position.
        The priority credential is added to the list if not already present.

        Args:
            prefix: Variable name prefix

        Returns:
            (credentials, priority_credential)
        """
        collected: List[str] = []

        multi = self._environ.get(f"{prefix}S")
        if multi:
            collected.extend(multi.split(","))

        single = self._environ.get(prefix)
        if single:
            collected.append(single)

        index = 1
        while True:
            numbered = self._environ.get(f"{prefix}_{index}")
            if not numbered:
                break
            collected.append(numbered)
            index += 1

        priority = (self._environ.get(f"{prefix}{ENV_PRIORITY_SUFFIX}") or "").strip()
        if priority:
            collected.insert(0, priority)

        credentials = self._dedupe(collected)
        lib_logger.info(
            f"Loaded {len(credentials)} credential(s) from {prefix}* "
            f"(priority: {'yes' if priority else 'no'})"
        )
        return credentials, (priority or None)

    def clear_cache(self) -> None:
        """Clear the cached configuration."""
        self._cache = None

    # =========================================================================
    # INTERNAL METHODS
    # =========================================================================

    def _get_system_defaults(self) -> Dict[str, Any]:
        """Get a dict of DispatchConfig fields with all system defaults."""
        defaults = DispatchConfig()
        return {f.name: getattr(defaults, f.name) for f in fields(DispatchConfig)}

    def _apply_overrides(
        self,
        values: Dict[str, Any],
        overrides: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Apply keyword overrides to config values.

        Raises:
            TypeError: On an unknown configuration key
        """
        known = DispatchConfig.field_names()
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown dispatch config option '{key}'")
            if value is not None:
                values[key] = value
        return values

    def _apply_env_overrides(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides to config values.

        Invalid values are logged and ignored.
        """
        defaults = self._get_system_defaults()
        for name in ENV_CONFIG_FIELDS:
            env_key = f"{ENV_PREFIX}{name.upper()}"
            env_val = self._environ.get(env_key)
            if env_val is None or env_val.strip() == "":
                continue

            current = values[name]
            try:
                values[name] = self._parse_env_value(defaults[name], env_val.strip())
            except ValueError:
                lib_logger.warning(
                    f"Invalid {env_key}='{env_val}'. Using '{self._display(current)}'."
                )
        return values

    def _parse_env_value(self, default: Any, raw: str) -> Any:
        """Parse a raw env string into the type of the default value."""
        if isinstance(default, QuotaResetMode):
            return QuotaResetMode(raw.lower())
        if isinstance(default, bool):
            return raw.lower() in TRUTHY_VALUES
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, str):
            if not _is_reset_time(raw):
                raise ValueError(raw)
            return raw
        return raw

    @staticmethod
    def _display(value: Any) -> Any:
        return value.value if isinstance(value, QuotaResetMode) else value

    @staticmethod
    def _dedupe(values: List[str]) -> List[str]:
        seen = set()
        result = []
        for value in values:
            value = value.strip()
            if value and value not in seen:
                seen.add(value)
                result.append(value)
        return result


def _is_reset_time(raw: str) -> bool:
    """Check an HH:MM time string."""
    parts = raw.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return False
    return 0 <= int(parts[0]) < 24 and 0 <= int(parts[1]) < 60
