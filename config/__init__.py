"""
Cognio Configuration Package.

Centralized engine defaults and integration credentials.
"""

from config.manager import EnvironmentManager, env_manager
from config.types import (
    AgentDefaults,
    RetrySettings,
    SalesforceCredentials,
    WorkflowDefaults,
)

# Re-export the singleton instance for easy access
env = env_manager

__all__ = [
    "EnvironmentManager",
    "env_manager",
    "env",
    "AgentDefaults",
    "RetrySettings",
    "SalesforceCredentials",
    "WorkflowDefaults",
]
