"""
CRM Agent

Agent executing lead, contact, opportunity and account operations against a
CRM provider.
"""

import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from cognio_core.agent import BaseAgent
from cognio_core.errors import ErrorCode
from cognio_core.schemas import Contact, CRMProviderType, Lead
from cognio_core.types import AgentConfig, ExecutionContext
from .providers import BaseCRMProvider, InMemoryCRMProvider, SalesforceProvider
from .types import (
    Account,
    CRMConfig,
    CRMContact,
    CRMError,
    CRMErrorCode,
    CRMLead,
    CRMOperation,
    CRMOperationInput,
    Opportunity,
    SearchCriteria,
    SearchResult,
)

logger = logging.getLogger(__name__)


class CRMAgentConfig(AgentConfig):
    """Agent configuration with the CRM connection settings."""

    description: Optional[str] = "CRM integration agent"
    crm: CRMConfig


def create_provider(config: CRMConfig) -> BaseCRMProvider:
    """
    Create the provider for a CRM configuration.

    Raises:
        CRMError: NOT_IMPLEMENTED for providers without an implementation,
            UNKNOWN_PROVIDER for anything else that is not supported
    """
    if config.provider == CRMProviderType.SALESFORCE:
        return SalesforceProvider(config)
    if config.provider == CRMProviderType.CUSTOM:
        return InMemoryCRMProvider(config)
    if config.provider in (CRMProviderType.HUBSPOT, CRMProviderType.PIPEDRIVE):
        raise CRMError(
            f"{config.provider.value} provider not implemented yet",
            CRMErrorCode.NOT_IMPLEMENTED,
            config.provider.value,
        )
    raise CRMError(f"Unknown CRM provider: {config.provider}", CRMErrorCode.UNKNOWN_PROVIDER)


def _as_operation_input(value: Any, provider: Optional[str] = None) -> CRMOperationInput:
    if isinstance(value, CRMOperationInput):
        return value
    if not isinstance(value, dict):
        raise CRMError(
            f"Expected a CRM operation, got {type(value).__name__}",
            ErrorCode.INVALID_INPUT,
            provider,
        )
    try:
        return CRMOperationInput(**value)
    except ValidationError as e:
        raise CRMError(
            f"Malformed CRM operation: {e.error_count()} validation error(s)",
            ErrorCode.INVALID_INPUT,
            provider,
            {"original_error": e},
        )


class CRMAgent(BaseAgent):
    """
    Agent for CRM systems.

    Each execution runs one operation, described by a CRMOperationInput
    (or an equivalent dict). The convenience methods wrap ``execute`` and
    raise the result's error on failure.

    Example:
        agent = CRMAgent({"name": "crm", "crm": {"provider": "custom"}})
        lead = await agent.create_lead(Lead(email="jane@acme.com"))
    """

    def __init__(
        self,
        config: Union[CRMAgentConfig, Dict[str, Any]],
        provider: Optional[BaseCRMProvider] = None,
    ):
        """
        Initialize the agent.

        Args:
            config: Agent and CRM configuration
            provider: Provider to use instead of the one built from ``config.crm``
        """
        if isinstance(config, dict):
            config = CRMAgentConfig(**config)

        super().__init__(config)
        self.provider = provider or create_provider(config.crm)

    async def initialize(self) -> None:
        await self.provider.initialize()
        await super().initialize()

    def validate_input(self, input: Any) -> None:
        super().validate_input(input)

        request = _as_operation_input(input, self.provider.provider_name)
        try:
            CRMOperation(request.operation)
        except ValueError:
            raise CRMError(
                f"Unknown operation: {request.operation}",
                CRMErrorCode.UNKNOWN_OPERATION,
                self.provider.provider_name,
            )

    async def run(self, context: ExecutionContext) -> Any:
        request = _as_operation_input(context.data, self.provider.provider_name)
        operation = CRMOperation(request.operation)
        data = request.data if request.data is not None else {}

        logger.debug(f"CRM operation '{operation.value}' on {self.provider.provider_name}")

        if operation == CRMOperation.CREATE_LEAD:
            return await self.provider.create_lead(Lead.model_validate(data))
        if operation == CRMOperation.GET_LEAD:
            return await self.provider.get_lead(data["id"])
        if operation == CRMOperation.UPDATE_LEAD:
            return await self.provider.update_lead(data["id"], data.get("updates") or {})
        if operation == CRMOperation.DELETE_LEAD:
            await self.provider.delete_lead(data["id"])
            return {"success": True}
        if operation == CRMOperation.SEARCH_LEADS:
            return await self.provider.search_leads(SearchCriteria.model_validate(data))
        if operation == CRMOperation.CREATE_CONTACT:
            return await self.provider.create_contact(Contact.model_validate(data))
        if operation == CRMOperation.GET_CONTACT:
            return await self.provider.get_contact(data["id"])
        if operation == CRMOperation.UPDATE_CONTACT:
            return await self.provider.update_contact(data["id"], data.get("updates") or {})
        if operation == CRMOperation.CREATE_OPPORTUNITY:
            return await self.provider.create_opportunity(Opportunity.model_validate(data))
        if operation == CRMOperation.GET_OPPORTUNITY:
            return await self.provider.get_opportunity(data["id"])
        if operation == CRMOperation.CREATE_ACCOUNT:
            return await self.provider.create_account(Account.model_validate(data))
        if operation == CRMOperation.GET_ACCOUNT:
            return await self.provider.get_account(data["id"])

        raise CRMError(f"Unknown operation: {operation.value}", CRMErrorCode.UNKNOWN_OPERATION)

    async def _call(self, operation: CRMOperation, data: Any) -> Any:
        result = await self.execute(CRMOperationInput(operation=operation.value, data=data))
        if not result.success:
            raise result.error
        return result.data

    async def create_lead(self, lead: Union[Lead, Dict[str, Any]]) -> CRMLead:
        return await self._call(CRMOperation.CREATE_LEAD, lead)

    async def get_lead(self, id: str) -> CRMLead:
        return await self._call(CRMOperation.GET_LEAD, {"id": id})

    async def update_lead(self, id: str, updates: Dict[str, Any]) -> CRMLead:
        return await self._call(CRMOperation.UPDATE_LEAD, {"id": id, "updates": updates})

    async def delete_lead(self, id: str) -> None:
        await self._call(CRMOperation.DELETE_LEAD, {"id": id})

    async def search_leads(self, criteria: Union[SearchCriteria, Dict[str, Any], None] = None) -> SearchResult:
        return await self._call(CRMOperation.SEARCH_LEADS, criteria or {})

    async def create_contact(self, contact: Union[Contact, Dict[str, Any]]) -> CRMContact:
        return await self._call(CRMOperation.CREATE_CONTACT, contact)

    async def get_contact(self, id: str) -> CRMContact:
        return await self._call(CRMOperation.GET_CONTACT, {"id": id})

    async def update_contact(self, id: str, updates: Dict[str, Any]) -> CRMContact:
        return await self._call(CRMOperation.UPDATE_CONTACT, {"id": id, "updates": updates})

    async def create_opportunity(self, opportunity: Union[Opportunity, Dict[str, Any]]) -> Opportunity:
        return await self._call(CRMOperation.CREATE_OPPORTUNITY, opportunity)

    async def get_opportunity(self, id: str) -> Opportunity:
        return await self._call(CRMOperation.GET_OPPORTUNITY, {"id": id})

    async def create_account(self, account: Union[Account, Dict[str, Any]]) -> Account:
        return await self._call(CRMOperation.CREATE_ACCOUNT, account)

    async def get_account(self, id: str) -> Account:
        return await self._call(CRMOperation.GET_ACCOUNT, {"id": id})

    async def close(self) -> None:
        await self.provider.close()
        await super().close()
