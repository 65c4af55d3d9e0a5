"""
Configuration management for recexplorer
"""

import json
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv
from platformdirs import user_config_dir

from recexplorer.exceptions import ConfigError, MissingConfigurationError

try:
    from importlib.util import find_spec

    YAML_AVAILABLE = find_spec("yaml") is not None
except ImportError:
    YAML_AVAILABLE = False


class Config:
    """Configuration loader and validator with multi-source support"""

    REQUIRED_FIELDS = ["zoom_account_id", "zoom_client_id", "zoom_client_secret"]
    OPTIONAL_FIELDS: dict[str, Any] = {
        "log_level": "INFO",
        "zoom_api_base_url": "https://api.zoom.us/v2",
        "zoom_oauth_token_url": None,
    }
    # Upstream fan-out/pagination limits; none of these are documented by Zoom,
    # so every one of them is overridable.
    TUNABLES: dict[str, int] = {
        "page_size": 300,
        "phone_max_pages": 20,
        "cc_max_pages": 50,
        "user_max_pages": 1000,
        "user_recordings_max_pages": 50,
        "meetings_concurrency": 4,
        "analytics_concurrency": 4,
        "token_expiry_margin": 60,
    }
    MAX_PAGE_SIZE = 300

    def __init__(self, env_file: str | None = None):
        # Configuration priority:
        # 1. Explicit config file (JSON/YAML/.env)
        # 2. Environment variables
        # 3. Default config file in the user config directory
        # 4. Defaults

        self.config_dir = Path(user_config_dir("recexplorer"))
        config_data: dict[str, Any] = {}

        if env_file is not None:
            config_data = self._load_config_file(env_file)
        else:
            default_config = self._find_default_config()
            if default_config:
                config_data = self._load_config_file(str(default_config))

        prefer_env_over_file = env_file is None

        def _resolve(config_key: str, env_key: str) -> Any:
            config_value = config_data.get(config_key)
            env_value = os.getenv(env_key)
            if prefer_env_over_file:
                return env_value if env_value is not None else config_value
            return config_value if config_value is not None else env_value

        # Stored privately to keep them out of logs/tracebacks
        self._zoom_account_id = _resolve("zoom_account_id", "ZOOM_ACCOUNT_ID")
        self._zoom_client_id = _resolve("zoom_client_id", "ZOOM_CLIENT_ID")
        self._zoom_client_secret = _resolve("zoom_client_secret", "ZOOM_CLIENT_SECRET")

        self.log_level = str(
            _resolve("log_level", "LOG_LEVEL") or self.OPTIONAL_FIELDS["log_level"]
        )
        api_base = (
            _resolve("zoom_api_base_url", "ZOOM_API_BASE_URL")
            or self.OPTIONAL_FIELDS["zoom_api_base_url"]
        )
        self.zoom_api_base_url = str(api_base).rstrip("/")
        token_override = _resolve("zoom_oauth_token_url", "ZOOM_OAUTH_TOKEN_URL")
        self.zoom_oauth_token_url = (
            str(token_override).strip()
            if token_override
            else derive_token_url(self.zoom_api_base_url)
        )

        for name, default in self.TUNABLES.items():
            raw = _resolve(name, f"RECEXPLORER_{name.upper()}")
            setattr(self, name, self._coerce_positive_int(name, raw, default))

        if self.page_size > self.MAX_PAGE_SIZE:
            self.page_size = self.MAX_PAGE_SIZE

    @property
    def zoom_account_id(self) -> str | None:
        """Zoom account ID (read-only property)"""
        return self._zoom_account_id

    @property
    def zoom_client_id(self) -> str | None:
        """Zoom client ID (read-only property)"""
        return self._zoom_client_id

    @property
    def zoom_client_secret(self) -> str | None:
        """Zoom client secret (read-only property)"""
        return self._zoom_client_secret

    def __repr__(self) -> str:
        """String representation that excludes credentials"""
        configured = bool(
            self._zoom_account_id and self._zoom_client_id and self._zoom_client_secret
        )
        return (
            f"Config("
            f"log_level={self.log_level!r}, "
            f"zoom_api_base_url={self.zoom_api_base_url!r}, "
            f"credentials={'configured' if configured else 'missing'}"
            f")"
        )

    @staticmethod
    def _coerce_positive_int(name: str, raw: Any, default: int) -> int:
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer, got {raw!r}")
        if value <= 0:
            raise ConfigError(f"{name} must be greater than zero, got {value}")
        return value

    @staticmethod
    def _is_null_device(path_str: str) -> bool:
        """Return True when the provided path represents the OS null device."""
        normalized = path_str.strip().lower().replace("\\", "/")
        null_candidates = {"/dev/null", "nul", "nul:", os.devnull.lower()}
        return normalized in null_candidates

    def _load_config_file(self, config_path: str) -> dict[str, Any]:
        """
        Load configuration from JSON, YAML or .env file

        Raises:
            ConfigError: If file cannot be loaded or parsed
        """
        if self._is_null_device(config_path):
            return {}

        path = Path(config_path)

        if not path.exists():
            raise ConfigError(
                f"Config file '{config_path}' does not exist. "
                "Provide an existing JSON/YAML/.env file or remove the --config flag."
            )

        if path.suffix.lower() in [".yaml", ".yml"] and not YAML_AVAILABLE:
            raise ConfigError(
                f"Cannot load YAML config file '{path.name}': PyYAML not installed. "
                "Install with: pip install 'recexplorer[yaml]'"
            )

        try:
            with open(path) as f:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                elif path.suffix.lower() in [".yaml", ".yml"]:
                    data = self._load_yaml(f)
                else:
                    # Anything else is treated as a .env file
                    load_dotenv(config_path)
                    return {}
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file {config_path}: {e}")

        self._validate_schema(data, path)
        return dict(data)

    def _load_yaml(self, file_obj: Any) -> dict[str, Any]:
        import yaml

        try:
            result = yaml.safe_load(file_obj)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}")
        return dict(result) if result else {}

    def _find_default_config(self) -> Path | None:
        for filename in ("config.json", "config.yaml", "config.yml"):
            candidate = self.config_dir / filename
            if candidate.exists():
                return candidate
        return None

    def _validate_schema(self, data: Any, path: Path) -> None:
        """
        Validate configuration schema

        Raises:
            ConfigError: If schema validation fails
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON/YAML object")

        known_keys = (
            set(self.REQUIRED_FIELDS) | set(self.OPTIONAL_FIELDS) | set(self.TUNABLES)
        )
        unknown_keys = set(data.keys()) - known_keys
        if unknown_keys:
            raise ConfigError(
                f"Unknown keys in config file {path}: {', '.join(sorted(unknown_keys))}\n"
                f"Valid keys: {', '.join(sorted(known_keys))}"
            )

        if "log_level" in data:
            valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if str(data["log_level"]).upper() not in valid_levels:
                raise ConfigError(f"log_level must be one of {valid_levels} in {path}")

        for key in ("zoom_api_base_url", "zoom_oauth_token_url"):
            if key in data and not isinstance(data[key], str):
                raise ConfigError(f"{key} must be a string in {path}")

        for key in self.TUNABLES:
            if key in data and (isinstance(data[key], bool) or not isinstance(data[key], int)):
                raise ConfigError(f"{key} must be an integer in {path}")

    def validate(self) -> None:
        """Validate required configuration"""
        missing = []

        if not self.zoom_account_id:
            missing.append("ZOOM_ACCOUNT_ID")
        if not self.zoom_client_id:
            missing.append("ZOOM_CLIENT_ID")
        if not self.zoom_client_secret:
            missing.append("ZOOM_CLIENT_SECRET")

        if missing:
            raise MissingConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                details="Set them in a .env file, the environment, or a config file",
            )

    def is_valid(self) -> bool:
        """Check if configuration is valid"""
        try:
            self.validate()
            return True
        except MissingConfigurationError:
            return False


def derive_token_url(api_base_url: str) -> str:
    """Infer the OAuth token URL from the API base host (Zoom vs ZoomGov, etc.)."""
    parsed = urlsplit(api_base_url)
    host = parsed.netloc
    if host.startswith("api."):
        host = host[4:]
    scheme = parsed.scheme or "https"
    return urlunsplit((scheme, host, "/oauth/token", "", ""))
