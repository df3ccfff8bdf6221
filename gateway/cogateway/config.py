"""
CoGateway Configuration

Settings for the redeem registry, fees, the anchor and logging, read from
YAML files and COGATEWAY_* environment variables.

Precedence (highest first):
    1. Environment variables (COGATEWAY_*)
    2. Values set at runtime or loaded from files (last write wins)
    3. Defaults

Default files, read by ConfigManager.load_defaults() when present:
    ./cogateway.yaml, ./config/cogateway.yaml, ~/.cogateway/config.yaml

Every value has a dotted path ("redeem.revert_timeout_blocks"); the manager,
the CLI and the schema export all address values by that path.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar, Union

import yaml

from gateway.cogateway.validation import Validators

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_FEE_COLLECTOR = "0x" + "fe" * 20

DEFAULT_CONFIG_FILES = (
    Path("cogateway.yaml"),
    Path("config/cogateway.yaml"),
    Path.home() / ".cogateway" / "config.yaml",
)


class ConfigError(Exception):
    """Configuration error."""
    pass


class ValidationError(ConfigError):
    """A value was rejected by its validator or could not be coerced."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """One setting: default, optional environment binding and validator."""
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])
        return self.default if self._value is None else self._value

    def set(self, value: Any) -> None:
        if isinstance(value, str):
            value = self._coerce(value)
        if self.validator and not self.validator(value):
            raise ValidationError(f"Invalid value for config: {value!r}")
        self._value = value

    def reset(self) -> None:
        self._value = None

    def _coerce(self, raw: str) -> Any:
        if isinstance(self.default, int):
            try:
                return int(raw)
            except ValueError as e:
                raise ValidationError(f"Cannot coerce {raw!r} to int") from e
        return raw

    def describe(self) -> Dict[str, Any]:
        info = {
            "type": type(self.default).__name__,
            "default": str(self.default),
            "description": self.description,
        }
        if self.env_var:
            info["env_var"] = self.env_var
        return info


def _is_address(value: Any) -> bool:
    return Validators.validate_address(value).is_valid


def _non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _positive_int(value: Any) -> bool:
    return _non_negative_int(value) and value > 0


@dataclass
class RedeemConfig:
    """Redeem message life-cycle."""
    revert_timeout_blocks: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=100,
        env_var="COGATEWAY_REVERT_TIMEOUT_BLOCKS",
        description="Anchored blocks after accept before a declared redeem may revert",
        validator=_non_negative_int,
    ))
    max_gas_limit: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=10_000_000,
        env_var="COGATEWAY_MAX_GAS_LIMIT",
        description="Largest gas limit a redeem request may declare",
        validator=_positive_int,
    ))


@dataclass
class FeeConfig:
    """Transaction overhead charged to callers."""
    transaction_fee: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=0,
        env_var="COGATEWAY_TRANSACTION_FEE",
        description="Base-token fee charged per mutating operation",
        validator=_non_negative_int,
    ))
    fee_collector: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default=DEFAULT_FEE_COLLECTOR,
        env_var="COGATEWAY_FEE_COLLECTOR",
        description="Account receiving transaction fees",
        validator=_is_address,
    ))


@dataclass
class AnchorConfig:
    max_state_roots: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=100,
        env_var="COGATEWAY_ANCHOR_MAX_STATE_ROOTS",
        description="State roots retained by the in-memory anchor",
        validator=_positive_int,
    ))


@dataclass
class ObservabilityConfig:
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="COGATEWAY_LOG_LEVEL",
        description="Log level (debug, info, warning, error, critical)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="COGATEWAY_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


def iter_values(section: Any, prefix: str = "") -> Iterator[Tuple[str, ConfigValue]]:
    """Yield (dotted path, ConfigValue) for every setting under section."""
    for name in section.__dataclass_fields__:
        attr = getattr(section, name)
        if isinstance(attr, ConfigValue):
            yield prefix + name, attr
        else:
            yield from iter_values(attr, f"{prefix}{name}.")


def _nest(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    tree: Dict[str, Any] = {}
    for path, value in pairs:
        *sections, key = path.split(".")
        node = tree
        for section in sections:
            node = node.setdefault(section, {})
        node[key] = value
    return tree


def _flatten(data: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key, value in data.items():
        if isinstance(value, dict):
            yield from _flatten(value, f"{prefix}{key}.")
        else:
            yield prefix + str(key), value


@dataclass
class CoGatewayConfig:
    """Root configuration."""
    redeem: RedeemConfig = field(default_factory=RedeemConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    anchor: AnchorConfig = field(default_factory=AnchorConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def values(self) -> Dict[str, ConfigValue]:
        return dict(iter_values(self))

    def to_dict(self) -> Dict[str, Any]:
        return _nest((path, value.get()) for path, value in iter_values(self))

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False)

    def copy(self) -> "CoGatewayConfig":
        """Independent config carrying this one's explicit values."""
        clone = CoGatewayConfig()
        targets = clone.values()
        for path, value in iter_values(self):
            targets[path]._value = value._value
        return clone

    def apply(self, data: Dict[str, Any]) -> None:
        """Set values from a nested mapping; nothing changes if any is rejected."""
        staged = self.copy()
        targets = staged.values()
        for path, value in _flatten(data):
            if path not in targets:
                raise ConfigError(f"Unknown config key: {path}")
            targets[path].set(value)
        mine = self.values()
        for path, value in targets.items():
            mine[path]._value = value._value


class ConfigManager:
    """
    Process-wide configuration.

    Thread-safe singleton; reset() drops it so tests start from defaults.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._config = CoGatewayConfig()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    @property
    def config(self) -> CoGatewayConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")
        self._config.apply(data)
        logger.debug("loaded config from %s", path)

    def load_defaults(self) -> List[Path]:
        """Load whichever default files exist; broken ones are skipped with a warning."""
        loaded = []
        for path in DEFAULT_CONFIG_FILES:
            if not path.exists():
                continue
            try:
                self.load_from_file(path)
            except ConfigError as e:
                logger.warning("skipping default config %s: %s", path, e)
            else:
                loaded.append(path)
        return loaded

    def set(self, path: str, value: Any) -> None:
        values = self._config.values()
        if path not in values:
            raise ConfigError(f"Invalid config path: {path}")
        values[path].set(value)

    def get(self, path: str) -> Any:
        """Value at path, or a mapping of values when path names a section."""
        values = self._config.values()
        if path in values:
            return values[path].get()
        prefix = path + "."
        section = [(p[len(prefix):], v.get()) for p, v in values.items() if p.startswith(prefix)]
        if not section:
            raise ConfigError(f"Invalid config path: {path}")
        return _nest(section)

    def validate(self) -> List[str]:
        """Problems with the effective values, environment included."""
        errors: List[str] = []
        for path, value in iter_values(self._config):
            try:
                current = value.get()
            except ConfigError as e:
                errors.append(f"{path}: {e}")
                continue
            if value.validator and not value.validator(current):
                errors.append(f"{path}: invalid value {current!r}")
        return errors

    def export_schema(self) -> Dict[str, Any]:
        return {
            "properties": _nest(
                (path, value.describe()) for path, value in iter_values(self._config)
            ),
        }


def get_config() -> CoGatewayConfig:
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    return ConfigManager()
