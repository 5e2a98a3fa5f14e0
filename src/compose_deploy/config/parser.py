"""YAML settings parser for compose-deploy."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import EnvironmentProfile

DEFAULT_SETTINGS_FILE = "compose-deploy.yaml"

# Built-in environments; settings files may override any of their fields
DEFAULT_ENVIRONMENTS = {
    "dev": EnvironmentProfile.dev,
    "prod": EnvironmentProfile.prod,
}


class ConfigValidationError(Exception):
    """Exception raised when settings validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Settings:
    """Per-environment defaults, optionally overridden by a YAML file."""

    def __init__(self, settings_path: Optional[str] = None):
        """Initialize settings.

        Args:
            settings_path: Path to a compose-deploy.yaml file (optional)
        """
        self.settings_path = Path(settings_path) if settings_path else None
        self.data: Dict = {}
        self.environments: Dict[str, EnvironmentProfile] = {
            name: factory() for name, factory in DEFAULT_ENVIRONMENTS.items()
        }

    def load(self) -> "Settings":
        """Load and validate settings from the YAML file.

        A missing file leaves the built-in defaults in place.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If the settings file is invalid
        """
        if self.settings_path is None or not self.settings_path.exists():
            return self

        try:
            with open(self.settings_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError(
                "Settings validation failed with 1 error(s)",
                [{"loc": [], "msg": "Top level must be a mapping"}],
            )

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Settings validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self._parse_environments()
        return self

    def validate(self) -> List[Dict]:
        """Validate settings against the schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        environments = self.data.get("environments", {})
        if not isinstance(environments, dict):
            return [{"loc": ["environments"], "msg": "Must be a mapping of environment names"}]

        for name, env_data in environments.items():
            if name not in DEFAULT_ENVIRONMENTS:
                errors.append(
                    {
                        "loc": ["environments", name],
                        "msg": f"Unknown environment (expected one of: {', '.join(DEFAULT_ENVIRONMENTS)})",
                    }
                )
                continue
            if not isinstance(env_data, dict):
                errors.append({"loc": ["environments", name], "msg": "Must be a mapping"})
                continue
            try:
                self._merge_environment(name, env_data)
            except ValidationError as e:
                for error in e.errors():
                    errors.append(
                        {
                            "loc": ["environments", name] + list(error["loc"]),
                            "msg": error["msg"],
                        }
                    )

        return errors

    def _merge_environment(self, name: str, env_data: Dict[str, Any]) -> EnvironmentProfile:
        defaults = DEFAULT_ENVIRONMENTS[name]().model_dump()
        return EnvironmentProfile(**_deep_merge(defaults, env_data))

    def _parse_environments(self) -> None:
        for name, env_data in self.data.get("environments", {}).items():
            self.environments[name] = self._merge_environment(name, env_data)

    def get_environment(self, name: str) -> EnvironmentProfile:
        """Get the profile for an environment.

        Raises:
            ConfigValidationError: If the environment is unknown
        """
        if name not in self.environments:
            raise ConfigValidationError(f"Environment '{name}' not found in settings")
        return self.environments[name]
