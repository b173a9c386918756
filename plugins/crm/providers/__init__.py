"""CRM provider implementations."""

from .base import BaseCRMProvider
from .memory import InMemoryCRMProvider
from .salesforce import SalesforceProvider

__all__ = ["BaseCRMProvider", "InMemoryCRMProvider", "SalesforceProvider"]
