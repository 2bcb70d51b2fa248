"""
Marketplace configuration.

Configuration sources (in order of precedence):
    1. Environment variables (ESCROW_*)
    2. YAML file or text passed to load_config / parse_config
    3. Default values
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

import yaml

ONE_DAY = 24 * 60 * 60
ONE_WEEK = 7 * ONE_DAY


class ConfigError(ValueError):
    """Configuration error."""
    pass


# field name -> environment variable
ENV_OVERRIDES = {
    "create_fee": "ESCROW_CREATE_FEE",
    "fee_percent": "ESCROW_FEE_PERCENT",
    "lock_duration": "ESCROW_LOCK_DURATION",
    "fee_recipient": "ESCROW_FEE_RECIPIENT",
    "deployer": "ESCROW_DEPLOYER",
}


@dataclass
class MarketplaceConfig:
    """Policy applied to a freshly deployed registry."""
    create_fee: int = 0
    fee_percent: int = 0
    lock_duration: int = ONE_WEEK
    fee_recipient: str = "fee_recipient"    # identity name
    deployer: str = "deployer"              # identity name, becomes registry owner

    def validate(self) -> 'MarketplaceConfig':
        if self.create_fee < 0:
            raise ConfigError(f"create_fee must be >= 0, got {self.create_fee}")
        if not 0 <= self.fee_percent <= 100:
            raise ConfigError(f"fee_percent must be within 0..100, got {self.fee_percent}")
        if self.lock_duration <= 0:
            raise ConfigError(f"lock_duration must be > 0, got {self.lock_duration}")
        if not self.fee_recipient:
            raise ConfigError("fee_recipient is empty")
        if not self.deployer:
            raise ConfigError("deployer is empty")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(name: str, value: Any) -> Any:
    """Coerce a raw value to the type of the named field."""
    target = {f.name: f.type for f in fields(MarketplaceConfig)}[name]
    try:
        if target in (int, "int"):
            if isinstance(value, bool):
                raise ValueError("boolean is not an integer")
            return int(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e


def config_from_dict(data: Optional[Mapping[str, Any]], environ: Optional[Mapping[str, str]] = None) -> MarketplaceConfig:
    """Build a validated config from a mapping, applying ESCROW_* overrides."""
    data = dict(data or {})
    environ = os.environ if environ is None else environ

    known = {f.name for f in fields(MarketplaceConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    values = {name: _coerce(name, value) for name, value in data.items()}
    for name, env_var in ENV_OVERRIDES.items():
        if env_var in environ:
            values[name] = _coerce(name, environ[env_var])

    return MarketplaceConfig(**values).validate()


def parse_config(yaml_content: str, environ: Optional[Mapping[str, str]] = None) -> MarketplaceConfig:
    """Parse a config from YAML content."""
    data = yaml.safe_load(yaml_content) or {}
    if not isinstance(data, dict):
        raise ConfigError("Config must be a YAML mapping")
    # Allow the policy to sit under a top-level "marketplace" key
    if "marketplace" in data and isinstance(data["marketplace"], dict):
        data = data["marketplace"]
    return config_from_dict(data, environ)


def load_config(file_path: str, environ: Optional[Mapping[str, str]] = None) -> MarketplaceConfig:
    """Load a config from a YAML file."""
    with open(file_path, 'r') as f:
        return parse_config(f.read(), environ)
