"""CRM Plugin.

Agent and providers for working with CRM systems from agent workflows.
"""

from plugins.crm.agent import CRMAgent, CRMAgentConfig, create_provider
from plugins.crm.providers import BaseCRMProvider, InMemoryCRMProvider, SalesforceProvider
from plugins.crm.types import (
    Account,
    Address,
    CRMConfig,
    CRMContact,
    CRMError,
    CRMErrorCode,
    CRMLead,
    CRMOperation,
    CRMOperationInput,
    OAuthCredentials,
    Opportunity,
    SearchCriteria,
    SearchResult,
)

__all__ = [
    "CRMAgent",
    "CRMAgentConfig",
    "create_provider",
    "BaseCRMProvider",
    "InMemoryCRMProvider",
    "SalesforceProvider",
    "Account",
    "Address",
    "CRMConfig",
    "CRMContact",
    "CRMError",
    "CRMErrorCode",
    "CRMLead",
    "CRMOperation",
    "CRMOperationInput",
    "OAuthCredentials",
    "Opportunity",
    "SearchCriteria",
    "SearchResult",
]
