import os
import shutil
import tempfile
import unittest
from unittest import mock
from pathlib import Path

from config.manager import EnvironmentManager
from config.types import AgentDefaults, SalesforceCredentials, WorkflowDefaults


class TestEnvironmentManager(unittest.TestCase):
    """Test cases for the EnvironmentManager class."""

    def setUp(self):
        """Set up test fixtures."""
        # Create a new instance for each test to avoid singleton issues
        EnvironmentManager._instance = None
        self.env_manager = EnvironmentManager()

        self.temp_dir = tempfile.mkdtemp()
        self.original_cwd = os.getcwd()

    def tearDown(self):
        """Clean up after tests."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        os.chdir(self.original_cwd)
        EnvironmentManager._instance = None

    def create_env_file(self, content):
        """Create a temporary .env file with the given content."""
        env_file = Path(self.temp_dir) / ".env"
        env_file.write_text(content)
        return env_file

    def test_initialization(self):
        """Test that EnvironmentManager initializes with the built-in defaults."""
        self.assertIsInstance(self.env_manager.env_variables, dict)
        self.assertIsInstance(self.env_manager._providers, list)
        self.assertIsInstance(self.env_manager.salesforce_parameters, dict)

        for name in EnvironmentManager.DEFAULT_SETTINGS:
            self.assertIn(name, self.env_manager.settings)

    def test_singleton_pattern(self):
        """Test that EnvironmentManager follows singleton pattern."""
        EnvironmentManager._instance = None

        manager1 = EnvironmentManager()
        manager2 = EnvironmentManager()

        self.assertIs(manager1, manager2)

    def test_default_agent_and_workflow_settings(self):
        """Test the documented engine defaults."""
        EnvironmentManager._instance = None
        with mock.patch.object(EnvironmentManager, "_load_from_env_file"):
            manager = EnvironmentManager()

        agent_defaults = manager.get_agent_defaults()
        self.assertIsInstance(agent_defaults, AgentDefaults)
        self.assertEqual(agent_defaults.timeout, 30.0)
        self.assertEqual(agent_defaults.retry.max_attempts, 3)
        self.assertEqual(agent_defaults.retry.delay, 1.0)
        self.assertEqual(agent_defaults.retry.backoff, "exponential")
        self.assertIsNone(agent_defaults.retry.max_delay)

        workflow_defaults = manager.get_workflow_defaults()
        self.assertIsInstance(workflow_defaults, WorkflowDefaults)
        self.assertEqual(workflow_defaults.timeout, 300.0)
        self.assertEqual(workflow_defaults.on_error, "stop")

    def test_parse_env_file(self):
        """Test parsing an environment file."""
        env_content = """
        # Test environment file
        AGENT_TIMEOUT=12.5
        AGENT_RETRY_MAX_ATTEMPTS=5
        AGENT_RETRY_BACKOFF=linear
        WORKFLOW_ON_ERROR=continue
        SALESFORCE_CLIENT_ID=client-123
        SALESFORCE_LOGIN_URL=https://test.salesforce.com
        UNRELATED_VARIABLE=ignored
        """
        env_file = self.create_env_file(env_content)

        self.env_manager._parse_env_file(env_file)

        self.assertEqual(self.env_manager.settings["agent_timeout"], 12.5)
        self.assertEqual(self.env_manager.settings["agent_retry_max_attempts"], 5)
        self.assertEqual(self.env_manager.settings["agent_retry_backoff"], "linear")
        self.assertEqual(self.env_manager.settings["workflow_on_error"], "continue")
        self.assertEqual(
            self.env_manager.salesforce_parameters.get("client_id"), "client-123"
        )
        self.assertEqual(
            self.env_manager.salesforce_parameters.get("login_url"),
            "https://test.salesforce.com",
        )
        self.assertEqual(self.env_manager.env_variables["UNRELATED_VARIABLE"], "ignored")

    def test_parse_env_file_with_quotes(self):
        """Test parsing an environment file with quoted values."""
        env_content = """
        SALESFORCE_API_KEY="user@example.com:secret pass"
        LOG_LEVEL='DEBUG'
        """
        env_file = self.create_env_file(env_content)

        self.env_manager._parse_env_file(env_file)

        self.assertEqual(
            self.env_manager.salesforce_parameters["api_key"],
            "user@example.com:secret pass",
        )
        self.assertEqual(self.env_manager.settings["log_level"], "DEBUG")

    def test_invalid_value_is_ignored(self):
        """Test that a value which cannot be converted keeps the previous setting."""
        previous = self.env_manager.settings["agent_retry_max_attempts"]

        with self.assertLogs("config.manager", level="WARNING"):
            self.env_manager._apply_variable("AGENT_RETRY_MAX_ATTEMPTS", "many")

        self.assertEqual(self.env_manager.settings["agent_retry_max_attempts"], previous)

    def test_load_from_os_environment(self):
        """Test that OS environment variables override settings."""
        with mock.patch.dict(
            os.environ,
            {"WORKFLOW_TIMEOUT": "60", "SALESFORCE_REFRESH_TOKEN": "refresh-abc"},
        ):
            self.env_manager.load()

        self.assertEqual(self.env_manager.get_setting("workflow_timeout"), 60.0)
        self.assertEqual(self.env_manager.get_workflow_defaults().timeout, 60.0)
        self.assertEqual(
            self.env_manager.get_salesforce_parameter("refresh_token"), "refresh-abc"
        )

    def test_register_provider(self):
        """Test registering a provider function."""
        provider = mock.Mock(
            return_value={
                "settings": {"agent_retry_delay": 0.25},
                "salesforce_parameters": {"client_id": "provider-client"},
            }
        )

        self.env_manager.register_provider(provider)
        self.assertIn(provider, self.env_manager._providers)

        self.env_manager.load()

        provider.assert_called_once()
        self.assertEqual(self.env_manager.get_setting("agent_retry_delay"), 0.25)
        self.assertEqual(
            self.env_manager.get_salesforce_parameters().client_id, "provider-client"
        )

    def test_failing_provider_does_not_break_load(self):
        """Test that a provider raising an exception is logged and skipped."""
        provider = mock.Mock(side_effect=RuntimeError("provider down"))
        self.env_manager.register_provider(provider)

        with self.assertLogs("config.manager", level="ERROR"):
            self.env_manager.load()

        provider.assert_called_once()

    def test_update_settings(self):
        """Test updating settings converts strings and ignores unknown keys."""
        applied = self.env_manager.update_settings(
            {"agent_timeout": "5", "workflow_on_error": "rollback", "not_a_setting": 1}
        )

        self.assertEqual(applied, {"agent_timeout": 5.0, "workflow_on_error": "rollback"})
        self.assertEqual(self.env_manager.get_setting("agent_timeout"), 5.0)
        self.assertNotIn("not_a_setting", self.env_manager.settings)

    def test_update_settings_skips_unconvertible_values(self):
        """Test that values failing conversion are logged and left unchanged."""
        before = self.env_manager.get_setting("agent_timeout")

        with self.assertLogs("config.manager", level="WARNING") as logs:
            applied = self.env_manager.update_settings(
                {"agent_timeout": "soon", "agent_retry_max_attempts": "4"}
            )

        self.assertEqual(applied, {"agent_retry_max_attempts": 4})
        self.assertEqual(self.env_manager.get_setting("agent_timeout"), before)
        self.assertIn("agent_timeout", logs.output[0])

    def test_provider_with_unconvertible_setting_does_not_break_load(self):
        """Test that load survives a provider returning an invalid value."""
        provider = mock.Mock(return_value={"settings": {"agent_retry_delay": "later"}})
        self.env_manager.register_provider(provider)
        before = self.env_manager.get_setting("agent_retry_delay")

        with self.assertLogs("config.manager", level="WARNING"):
            self.env_manager.load()

        self.assertEqual(self.env_manager.get_setting("agent_retry_delay"), before)

    def test_get_setting_default(self):
        """Test that unset settings fall back to the given default."""
        self.env_manager.settings["agent_retry_max_delay"] = None
        self.assertEqual(self.env_manager.get_setting("agent_retry_max_delay", 10.0), 10.0)
        self.assertIsNone(self.env_manager.get_setting("missing"))

    def test_salesforce_parameters_defaults(self):
        """Test Salesforce credentials model defaults."""
        self.env_manager.salesforce_parameters = {}
        credentials = self.env_manager.get_salesforce_parameters()

        self.assertIsInstance(credentials, SalesforceCredentials)
        self.assertEqual(credentials.login_url, "https://login.salesforce.com")
        self.assertIsNone(credentials.api_key)

    def test_get_all_configuration_hides_secrets(self):
        """Test that secrets are not included in the configuration dump."""
        self.env_manager.salesforce_parameters = {
            "client_id": "visible",
            "client_secret": "hidden",
            "api_key": "user:pass",
        }

        config = self.env_manager.get_all_configuration()

        self.assertEqual(config["salesforce_parameters"], {"client_id": "visible"})
        self.assertEqual(config["default_settings"]["agent_timeout"]["type"], "float")
        self.assertEqual(config["default_settings"]["agent_timeout"]["default_value"], 30.0)


if __name__ == "__main__":
    unittest.main()
