# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for an upgrade run.

Settings come from command line flags, with defaults optionally read from
a YAML file (``snafu-upgrade.yaml`` in the project directory, or an
explicit ``--config`` path). Values tagged ``!env VAR_NAME`` are resolved
from the environment at load time.

Example ``snafu-upgrade.yaml``::

    suffix: Snafu
    max_iterations: 8
    extra_check_args:
      - --all-features
      - !env SNAFU_UPGRADE_TARGET_ARG
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from snafu_upgrade.rename import DEFAULT_SUFFIX


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "snafu-upgrade.yaml"
DEFAULT_MAX_ITERATIONS = 5

_KNOWN_KEYS = frozenset(
    {"suffix", "max_iterations", "extra_check_args", "cargo", "directory"}
)
_SUFFIX_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


class ConfigError(Exception):
    """Raised for invalid or unreadable configuration."""


@dataclass(frozen=True)
class UpgradeConfig:
    """Settings for one upgrade run.

    Attributes:
        project_dir: Directory cargo is run in.
        directory: Only files inside this directory are modified. ``None``
            means the cargo workspace root.
        suffix: Context selector suffix of the new convention.
        max_iterations: Follow-up builds allowed before giving up.
        dry_run: Report changes instead of writing them.
        extra_check_args: Arguments forwarded verbatim to ``cargo check``.
        verbose: Show detailed information.
        cargo_command: Cargo executable.
    """

    project_dir: Path
    directory: Path | None = None
    suffix: str = DEFAULT_SUFFIX
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    dry_run: bool = False
    extra_check_args: tuple[str, ...] = ()
    verbose: bool = False
    cargo_command: str = "cargo"

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not _SUFFIX_PATTERN.match(self.suffix):
            raise ValueError(
                f"Suffix must be a non-empty identifier: {self.suffix!r}"
            )
        if self.max_iterations < 1:
            raise ValueError(
                f"Max iterations must be >= 1: {self.max_iterations}"
            )
        if not self.cargo_command:
            raise ValueError("Cargo command cannot be empty")

    @classmethod
    def load(
        cls,
        project_dir: Path,
        config_path: Path | None = None,
        **overrides: Any,
    ) -> "UpgradeConfig":
        """Build configuration from an optional YAML file and overrides.

        Overrides whose value is ``None`` (flags not given on the command
        line) fall back to the file, then to built-in defaults.

        Args:
            project_dir: Directory cargo is run in.
            config_path: Explicit config file. When omitted,
                ``snafu-upgrade.yaml`` in *project_dir* is used if present.
            **overrides: Field values from the command line.

        Returns:
            UpgradeConfig instance.

        Raises:
            ConfigError: If the file is invalid or values are out of range.
        """
        if config_path is None:
            candidate = project_dir / DEFAULT_CONFIG_NAME
            raw = load_config_file(candidate) if candidate.exists() else {}
        else:
            raw = load_config_file(config_path)

        values: dict[str, Any] = {
            "suffix": _resolve(raw.get("suffix"), str, DEFAULT_SUFFIX),
            "max_iterations": _resolve(
                raw.get("max_iterations"), int, DEFAULT_MAX_ITERATIONS
            ),
            "extra_check_args": tuple(
                _resolve_string_list(raw.get("extra_check_args"))
            ),
            "cargo_command": _resolve(raw.get("cargo"), str, "cargo"),
        }

        directory = _resolve(raw.get("directory"), str, None)
        if directory is not None:
            values["directory"] = project_dir / Path(directory).expanduser()

        for key, value in overrides.items():
            if value is None:
                continue
            if key == "extra_check_args":
                value = tuple(value)
            values[key] = value

        try:
            return cls(project_dir=project_dir, **values)
        except (TypeError, ValueError) as e:
            raise ConfigError(str(e)) from e


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a config file into an unresolved mapping.

    Raises:
        ConfigError: If the file is missing, unparseable, not a mapping, or
            contains unknown keys.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            raw = yaml.load(f, Loader=_make_loader())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must be a YAML mapping: {path}")

    unknown = sorted(str(key) for key in raw if key not in _KNOWN_KEYS)
    if unknown:
        raise ConfigError(
            f"Unknown config key(s) in {path}: {', '.join(unknown)}"
        )

    logger.debug("Loaded config from %s", path)
    return raw


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is unset/empty.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name) or None
    if value is None:
        return None
    return str(value)


def _resolve(value: object, coerce: type, default: Any) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion."""
    if not isinstance(value, _EnvVar) and isinstance(value, coerce):
        # bool is an int subclass; YAML's ``yes`` must not become 1
        if not (coerce is int and isinstance(value, bool)):
            return value

    resolved = _raw_resolve(value)
    if resolved is None:
        return default

    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


def _resolve_string_list(value: object) -> list[str]:
    """Resolve a list of strings, handling ``!env`` for each element.

    Raises:
        ConfigError: If value is not a list.
    """
    if value is None:
        return []

    if not isinstance(value, list):
        raise ConfigError(
            f"Config 'extra_check_args' must be a list, "
            f"got {type(value).__name__}"
        )

    result: list[str] = []
    for item in value:
        resolved = _raw_resolve(item)
        if resolved:
            result.append(resolved)
    return result
