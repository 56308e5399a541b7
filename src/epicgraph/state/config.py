"""Jira connection settings and the JSON store that persists them."""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from epicgraph.errors import ConfigError

DEFAULT_TIMEOUT = 30.0

# Environment variable -> JiraConfig field. Each one overrides the store.
ENV_VARS: dict[str, str] = {
    "JIRA_URL": "base_url",
    "JIRA_USER": "username",
    "JIRA_API_TOKEN": "api_token",
}


def _default_config_path() -> Path:
    """Return the default path for stored settings."""
    return Path.home() / ".config" / "epicgraph" / "config.json"


@dataclass(frozen=True)
class JiraConfig:
    """Connection settings handed explicitly to RealIssueSource."""

    base_url: str = ""
    username: str = ""
    api_token: str = ""
    timeout: float = DEFAULT_TIMEOUT

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("base_url", "username", "api_token")
            if not getattr(self, name)
        ]

    def validate(self) -> "JiraConfig":
        """Return self, or raise ConfigError naming every missing field."""
        missing = self.missing_fields()
        if missing:
            raise ConfigError(
                "Missing Jira settings: "
                + ", ".join(missing)
                + " (run 'epicgraph config set' or export "
                + ", ".join(ENV_VARS)
                + ")"
            )
        return self

    def with_env(self, environ: Mapping[str, str] | None = None) -> "JiraConfig":
        """Return a copy with any JIRA_* environment variables applied."""
        env = os.environ if environ is None else environ
        overrides = {
            name: env[var] for var, name in ENV_VARS.items() if env.get(var)
        }
        return replace(self, **overrides)

    @property
    def masked_token(self) -> str:
        if len(self.api_token) > 8:
            return self.api_token[:4] + "..." + self.api_token[-4:]
        return "****" if self.api_token else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "username": self.username,
            "api_token": self.api_token,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JiraConfig":
        return cls(
            base_url=data.get("base_url", ""),
            username=data.get("username", ""),
            api_token=data.get("api_token", ""),
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
        )


class ConfigStore:
    """Manages stored settings in ~/.config/epicgraph/config.json."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _default_config_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> JiraConfig:
        """Return the stored settings, or an empty JiraConfig.

        Raises ConfigError if the file exists but cannot be read or parsed.
        """
        if not self._path.exists():
            return JiraConfig()
        try:
            data = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Could not read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Could not read {self._path}: expected a JSON object")
        return JiraConfig.from_dict(data)

    def save(self, config: JiraConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {**config.to_dict(), "updated_at": datetime.now(UTC).isoformat()}
        # The file holds an API token: restrict it before anything is written.
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps(data, indent=2))

    def clear(self) -> bool:
        """Remove stored settings. Returns True if a file existed."""
        if not self._path.exists():
            return False
        self._path.unlink()
        return True

    def resolve(self, environ: Mapping[str, str] | None = None) -> JiraConfig:
        """Stored settings overlaid with JIRA_* environment variables."""
        return self.load().with_env(environ)
