"""In-process CRM provider backed by dictionaries."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from cognio_core.schemas import Contact, CRMProviderType, Lead
from cognio_core.types import utcnow
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
from .base import BaseCRMProvider

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _field_value(record: CRMLead, name: str) -> Any:
    if name in type(record).model_fields:
        return getattr(record, name)
    return record.custom_fields.get(name)


class InMemoryCRMProvider(BaseCRMProvider):
    """
    CRM provider keeping every record in memory.

    Used for the ``custom`` provider type, for local runs and in tests. Data
    lives as long as the provider instance.
    """

    def __init__(self, config: Optional[CRMConfig] = None):
        super().__init__(config or CRMConfig(provider=CRMProviderType.CUSTOM))
        self.leads: Dict[str, CRMLead] = {}
        self.contacts: Dict[str, CRMContact] = {}
        self.opportunities: Dict[str, Opportunity] = {}
        self.accounts: Dict[str, Account] = {}

    async def initialize(self) -> None:
        self.initialized = True
        logger.debug("In-memory CRM provider initialized")

    def _not_found(self, kind: str, id: str) -> CRMError:
        return CRMError(f"{kind} not found: {id}", CRMErrorCode.NOT_FOUND, self.provider_name, {"id": id})

    async def create_lead(self, lead: Lead) -> CRMLead:
        self.ensure_initialized()

        lead_id = _new_id("lead")
        now = utcnow()
        record = CRMLead(
            **lead.model_dump(exclude={"id", "provider_id", "provider", "raw", "created_at", "updated_at"}),
            id=lead_id,
            provider_id=lead_id,
            provider=self.provider_name,
            created_at=now,
            updated_at=now,
        )
        self.leads[lead_id] = record
        return record.model_copy(deep=True)

    async def get_lead(self, id: str) -> CRMLead:
        self.ensure_initialized()

        if id not in self.leads:
            raise self._not_found("Lead", id)
        return self.leads[id].model_copy(deep=True)

    async def update_lead(self, id: str, updates: Dict[str, Any]) -> CRMLead:
        self.ensure_initialized()

        if id not in self.leads:
            raise self._not_found("Lead", id)

        merged = self.leads[id].model_dump()
        merged.update({k: v for k, v in updates.items() if k not in ("id", "provider_id", "provider")})
        merged["updated_at"] = utcnow()

        try:
            self.leads[id] = CRMLead(**merged)
        except ValidationError as e:
            raise CRMError("Failed to update lead", CRMErrorCode.UPDATE_FAILED, self.provider_name, {"original_error": e})
        return self.leads[id].model_copy(deep=True)

    async def delete_lead(self, id: str) -> None:
        self.ensure_initialized()

        if self.leads.pop(id, None) is None:
            raise self._not_found("Lead", id)

    async def search_leads(self, criteria: SearchCriteria) -> SearchResult:
        self.ensure_initialized()

        matches: List[CRMLead] = list(self.leads.values())

        if criteria.query:
            needle = criteria.query.lower()
            matches = [
                lead
                for lead in matches
                if needle in (lead.email or "").lower() or needle in (lead.company or "").lower()
            ]

        for name, value in criteria.filters.items():
            matches = [lead for lead in matches if _field_value(lead, name) == value]

        if criteria.sort_by:
            sort_by = criteria.sort_by
            # Records without the field sort last in either direction
            present = [lead for lead in matches if _field_value(lead, sort_by) is not None]
            missing = [lead for lead in matches if _field_value(lead, sort_by) is None]
            present.sort(key=lambda lead: _field_value(lead, sort_by), reverse=criteria.sort_order == "desc")
            matches = present + missing

        total = len(matches)
        page = matches[criteria.offset:criteria.offset + criteria.limit]
        next_offset = criteria.offset + len(page)

        return SearchResult(
            results=[lead.model_copy(deep=True) for lead in page],
            total=total,
            has_more=next_offset < total,
            next_offset=next_offset,
        )

    async def create_contact(self, contact: Contact) -> CRMContact:
        self.ensure_initialized()

        contact_id = _new_id("contact")
        record = CRMContact(
            **contact.model_dump(exclude={"id", "provider_id", "provider", "raw"}),
            id=contact_id,
            provider_id=contact_id,
            provider=self.provider_name,
        )
        self.contacts[contact_id] = record
        return record.model_copy(deep=True)

    async def get_contact(self, id: str) -> CRMContact:
        self.ensure_initialized()

        if id not in self.contacts:
            raise self._not_found("Contact", id)
        return self.contacts[id].model_copy(deep=True)

    async def update_contact(self, id: str, updates: Dict[str, Any]) -> CRMContact:
        self.ensure_initialized()

        if id not in self.contacts:
            raise self._not_found("Contact", id)

        merged = self.contacts[id].model_dump()
        merged.update({k: v for k, v in updates.items() if k not in ("id", "provider_id", "provider")})

        try:
            self.contacts[id] = CRMContact(**merged)
        except ValidationError as e:
            raise CRMError("Failed to update contact", CRMErrorCode.UPDATE_FAILED, self.provider_name, {"original_error": e})
        return self.contacts[id].model_copy(deep=True)

    async def create_opportunity(self, opportunity: Opportunity) -> Opportunity:
        self.ensure_initialized()

        opportunity_id = _new_id("opp")
        now = utcnow()
        record = opportunity.model_copy(
            update={
                "id": opportunity_id,
                "provider_id": opportunity_id,
                "stage": opportunity.stage or "Prospecting",
                "close_date": opportunity.close_date or now.date(),
                "created_at": now,
                "updated_at": now,
            },
            deep=True,
        )
        self.opportunities[opportunity_id] = record
        return record.model_copy(deep=True)

    async def get_opportunity(self, id: str) -> Opportunity:
        self.ensure_initialized()

        if id not in self.opportunities:
            raise self._not_found("Opportunity", id)
        return self.opportunities[id].model_copy(deep=True)

    async def create_account(self, account: Account) -> Account:
        self.ensure_initialized()

        account_id = _new_id("account")
        now = utcnow()
        record = account.model_copy(
            update={"id": account_id, "provider_id": account_id, "created_at": now, "updated_at": now},
            deep=True,
        )
        self.accounts[account_id] = record
        return record.model_copy(deep=True)

    async def get_account(self, id: str) -> Account:
        self.ensure_initialized()

        if id not in self.accounts:
            raise self._not_found("Account", id)
        return self.accounts[id].model_copy(deep=True)
