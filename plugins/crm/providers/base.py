"""
Base CRM Provider

Abstract base class for CRM backends used by the CRM agent.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from cognio_core.schemas import Contact, Lead
from ..types import (
    Account,
    CRMConfig,
    CRMContact,
    CRMError,
    CRMErrorCode,
    CRMLead,
    Opportunity,
    SearchCriteria,
    SearchResult,
)


class BaseCRMProvider(ABC):
    """
    Abstract base class for CRM providers.

    Providers must be initialized before any domain operation and report
    failures as CRMError carrying the operation's error code.
    """

    def __init__(self, config: CRMConfig):
        """
        Initialize provider.

        Args:
            config: CRM connection settings
        """
        self.config = config
        self.initialized = False

    @property
    def provider_name(self) -> str:
        return self.config.provider.value

    @abstractmethod
    async def initialize(self) -> None:
        """Connect and authenticate against the CRM."""
        pass

    @abstractmethod
    async def create_lead(self, lead: Lead) -> CRMLead:
        pass

    @abstractmethod
    async def get_lead(self, id: str) -> CRMLead:
        pass

    @abstractmethod
    async def update_lead(self, id: str, updates: Dict[str, Any]) -> CRMLead:
        pass

    @abstractmethod
    async def delete_lead(self, id: str) -> None:
        pass

    @abstractmethod
    async def search_leads(self, criteria: SearchCriteria) -> SearchResult:
        pass

    @abstractmethod
    async def create_contact(self, contact: Contact) -> CRMContact:
        pass

    @abstractmethod
    async def get_contact(self, id: str) -> CRMContact:
        pass

    @abstractmethod
    async def update_contact(self, id: str, updates: Dict[str, Any]) -> CRMContact:
        pass

    @abstractmethod
    async def create_opportunity(self, opportunity: Opportunity) -> Opportunity:
        pass

    @abstractmethod
    async def get_opportunity(self, id: str) -> Opportunity:
        pass

    @abstractmethod
    async def create_account(self, account: Account) -> Account:
        pass

    @abstractmethod
    async def get_account(self, id: str) -> Account:
        pass

    async def close(self) -> None:
        """Release resources held by the provider."""
        self.initialized = False

    def ensure_initialized(self) -> None:
        """
        Raises:
            CRMError: NOT_INITIALIZED when ``initialize`` has not completed
        """
        if not self.initialized:
            raise CRMError(
                "Provider not initialized",
                CRMErrorCode.NOT_INITIALIZED,
                self.provider_name,
            )

    def validate_config(self) -> None:
        """
        Check that credentials are present.

        Raises:
            CRMError: INVALID_CONFIG when no API key, OAuth credentials or
                access token is configured
        """
        if not (self.config.api_key or self.config.oauth or self.config.access_token):
            raise CRMError(
                "API key, OAuth credentials or access token required",
                CRMErrorCode.INVALID_CONFIG,
                self.provider_name,
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider_name!r}, initialized={self.initialized})"
