"""Cognio Plugins Package.

This package contains integrations built on top of the core engine.
Each subdirectory contains a separate plugin implementation.
"""

# Import plugin modules
from plugins import crm

# List of all plugin modules for easy importing
__all__ = ["crm"]
