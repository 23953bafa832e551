"""Client settings loaded from YAML and/or environment variables."""
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

DEFAULT_TIMEOUT_SECONDS = 12.0
DEFAULT_ALTERNATIVES_LIMIT = 3


@dataclass(frozen=True)
class ClientSettings:
    """Settings for talking to the plan store.

    Attributes:
        base_url: Root URL of the meal-plan backend (None for local files)
        api_token: Bearer token sent with every request
        timeout_seconds: Upper bound for each remote call
        alternatives_limit: Alternatives requested by default, 1..10
        timezone: IANA zone whose calendar truncates timestamps to dates
    """
    base_url: Optional[str] = None
    api_token: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    alternatives_limit: int = DEFAULT_ALTERNATIVES_LIMIT
    timezone: Optional[str] = None

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if not 1 <= self.alternatives_limit <= 10:
            raise ValueError(f"alternatives limit must be between 1 and 10, got {self.alternatives_limit}")
        if self.timezone is not None:
            self.tzinfo()

    def tzinfo(self) -> Optional[ZoneInfo]:
        """Return the configured zone, or None when unset.

        Raises:
            ValueError: If the zone name is unknown
        """
        if self.timezone is None:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{self.timezone}'")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["ClientSettings"] = None,
    ) -> "ClientSettings":
        """Create settings from MEALSYNC_* environment variables.

        Args:
            environ: Mapping to read (defaults to os.environ)
            base: Settings the environment overrides (defaults to defaults)

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        settings = base or cls()
        overrides: Dict[str, Any] = {}

        if env.get("MEALSYNC_BASE_URL"):
            overrides["base_url"] = env["MEALSYNC_BASE_URL"]
        if env.get("MEALSYNC_API_TOKEN"):
            overrides["api_token"] = env["MEALSYNC_API_TOKEN"]
        if env.get("MEALSYNC_TIMEOUT"):
            overrides["timeout_seconds"] = _to_float(env["MEALSYNC_TIMEOUT"], "MEALSYNC_TIMEOUT")
        if env.get("MEALSYNC_TIMEZONE"):
            overrides["timezone"] = env["MEALSYNC_TIMEZONE"]

        return replace(settings, **overrides) if overrides else settings


def _to_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}")


class SettingsLoader:
    """Loader for client settings from a YAML file.

    Layout::

        remote:
          base_url: http://localhost:5000
          api_token: ...
          timeout_seconds: 12
        alternatives:
          limit: 3
        calendar:
          timezone: Europe/Berlin
    """

    def __init__(self, yaml_path: str):
        self.yaml_path = Path(yaml_path)

    def load(self, apply_env: bool = True, environ: Optional[Mapping[str, str]] = None) -> ClientSettings:
        """Load settings from the YAML file, then apply environment overrides.

        Returns:
            ClientSettings object

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If a section or value is malformed
        """
        with open(self.yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.yaml_path}: top level must be a mapping")

        remote = _section(data, "remote")
        alternatives = _section(data, "alternatives")
        calendar = _section(data, "calendar")

        settings = ClientSettings(
            base_url=remote.get("base_url"),
            api_token=remote.get("api_token"),
            timeout_seconds=_to_float(
                remote.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS), "remote.timeout_seconds"
            ),
            alternatives_limit=_to_int(
                alternatives.get("limit", DEFAULT_ALTERNATIVES_LIMIT), "alternatives.limit"
            ),
            timezone=calendar.get("timezone"),
        )
        if apply_env:
            settings = ClientSettings.from_env(environ, base=settings)
        return settings


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section
