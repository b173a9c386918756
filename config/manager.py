import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List, Callable

from pydantic import ValidationError

from config.types import AgentDefaults, RetrySettings, WorkflowDefaults, SalesforceCredentials


class EnvironmentManager:
    """
    Environment manager holding the engine defaults and integration
    credentials, resolved from built-in defaults, a .env file, the process
    environment and registered providers (in that order).
    """

    _instance = None

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Agent execution
        "agent_timeout": (30.0, float),
        "agent_retry_max_attempts": (3, int),
        "agent_retry_delay": (1.0, float),
        "agent_retry_backoff": ("exponential", str),
        "agent_retry_max_delay": (None, float),
        # Workflow execution
        "workflow_timeout": (300.0, float),
        "workflow_on_error": ("stop", str),
        # Logging level used by command line entry points
        "log_level": ("INFO", str),
    }

    # Each setting can be set via its uppercase env var
    ENV_MAPPING = {setting.upper(): setting for setting in DEFAULT_SETTINGS.keys()}

    SALESFORCE_PREFIX = "SALESFORCE_"

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.env_variables: Dict[str, str] = {}
        self._providers: List[Callable[[], Dict[str, Any]]] = []
        self.salesforce_parameters: Dict[str, Any] = {}
        self.settings: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)

        for key, (default_value, _) in self.DEFAULT_SETTINGS.items():
            self.settings[key] = default_value

        self._load_from_env_file()

    def _convert_value(self, value: str, target_type: type) -> Any:
        """Convert string value to target type"""
        if target_type == bool:
            return value.lower() == "true"
        return target_type(value)

    def _apply_variable(self, key: str, value: str):
        """Route one environment variable to a setting or parameter group"""
        self.env_variables[key] = value

        if key in self.ENV_MAPPING:
            setting_name = self.ENV_MAPPING[key]
            _, target_type = self.DEFAULT_SETTINGS[setting_name]
            try:
                self.settings[setting_name] = self._convert_value(value, target_type)
            except ValueError:
                self.logger.warning(
                    f"Ignoring invalid value for {key}: {value!r} (expected {target_type.__name__})"
                )
        # Handle SALESFORCE_ prefixed variables
        elif key.startswith(self.SALESFORCE_PREFIX):
            param_name = key[len(self.SALESFORCE_PREFIX):].lower()
            self.salesforce_parameters[param_name] = value

    def _load_from_env_file(self):
        """Find and load variables from a .env file"""
        env_file_paths = [Path.cwd() / ".env"]

        # Try home directory - safely handle environments without one
        try:
            env_file_paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            pass

        for env_path in env_file_paths:
            if env_path.exists() and env_path.is_file():
                self.logger.debug(f"Loading environment from: {env_path}")
                self._parse_env_file(env_path)
                return

        self.logger.debug(
            "No .env file found, tried: " + ", ".join(str(p) for p in env_file_paths)
        )

    def _parse_env_file(self, env_file_path: Path):
        """Parse a .env file and load its variables"""
        try:
            with open(env_file_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        key = key.strip()
                        value = value.strip()

                        # Remove quotes if present
                        if (value.startswith('"') and value.endswith('"')) or (
                            value.startswith("'") and value.endswith("'")
                        ):
                            value = value[1:-1]

                        self._apply_variable(key, value)

        except OSError as e:
            self.logger.error(f"Error parsing .env file {env_file_path}: {e}")

    def register_provider(self, provider: Callable[[], Dict[str, Any]]):
        """Register a provider function that returns additional settings"""
        self._providers.append(provider)
        return self

    def load(self):
        """Load all environment information"""
        self._load_from_env_file()

        # OS environment overrides the .env file
        for key, value in os.environ.items():
            self._apply_variable(key, value)

        # Call all registered providers
        for provider in self._providers:
            try:
                additional_data = provider()
            except Exception as e:
                self.logger.error(f"Error from provider: {e}", exc_info=True)
                continue

            if settings := additional_data.get("settings", {}):
                self.update_settings(settings)

            if salesforce_params := additional_data.get("salesforce_parameters", {}):
                self.salesforce_parameters.update(salesforce_params)

        return self

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value by name"""
        value = self.settings.get(name)
        return default if value is None else value

    def update_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update known settings, ignoring unknown keys.

        Returns:
            Dictionary of the settings that were applied
        """
        applied = {}
        for key, value in settings.items():
            if key not in self.DEFAULT_SETTINGS:
                self.logger.warning(f"Ignoring unknown setting: {key}")
                continue
            _, target_type = self.DEFAULT_SETTINGS[key]
            if isinstance(value, str) and target_type is not str:
                try:
                    value = self._convert_value(value, target_type)
                except ValueError:
                    self.logger.warning(
                        f"Ignoring invalid value for setting {key}: {value!r} (expected {target_type.__name__})"
                    )
                    continue
            self.settings[key] = value
            applied[key] = value
        return applied

    def get_agent_defaults(self) -> AgentDefaults:
        """Get default agent timeout and retry settings"""
        return AgentDefaults(
            timeout=self.get_setting("agent_timeout", 30.0),
            retry=RetrySettings(
                max_attempts=self.get_setting("agent_retry_max_attempts", 3),
                delay=self.get_setting("agent_retry_delay", 1.0),
                backoff=self.get_setting("agent_retry_backoff", "exponential"),
                max_delay=self.get_setting("agent_retry_max_delay"),
            ),
        )

    def get_workflow_defaults(self) -> WorkflowDefaults:
        """Get default workflow timeout and error strategy"""
        return WorkflowDefaults(
            timeout=self.get_setting("workflow_timeout", 300.0),
            on_error=self.get_setting("workflow_on_error", "stop"),
        )

    def get_salesforce_parameters(self) -> SalesforceCredentials:
        """Get Salesforce connection parameters with defaults applied"""
        try:
            return SalesforceCredentials(**self.salesforce_parameters)
        except ValidationError as e:
            self.logger.warning(f"Invalid Salesforce parameters, using defaults: {e}")
            return SalesforceCredentials()

    def get_salesforce_parameter(self, name: str, default: Any = None) -> Any:
        """Get a specific Salesforce parameter"""
        return self.salesforce_parameters.get(name, default)

    def get_all_configuration(self) -> Dict[str, Any]:
        """Get all settings together with their declared defaults"""
        default_settings_serializable = {}
        for key, (default_value, type_class) in self.DEFAULT_SETTINGS.items():
            default_settings_serializable[key] = {
                "default_value": default_value,
                "type": type_class.__name__,
            }

        return {
            "settings": dict(self.settings),
            "salesforce_parameters": {
                key: value
                for key, value in self.salesforce_parameters.items()
                if key not in ("api_key", "client_secret", "refresh_token")
            },
            "default_settings": default_settings_serializable,
        }


# Create singleton instance
env_manager = EnvironmentManager()
