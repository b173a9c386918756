"""
CRM plugin types.

Records returned by providers extend the shared Lead and Contact schemas
with the provider's identifiers and raw payload.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from cognio_core.errors import AgentError
from cognio_core.schemas import Contact, CRMProviderType, Lead


class CRMErrorCode:
    """Error codes raised by the CRM plugin."""

    INIT_FAILED = "INIT_FAILED"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    INVALID_CONFIG = "INVALID_CONFIG"
    CREATE_FAILED = "CREATE_FAILED"
    READ_FAILED = "READ_FAILED"
    UPDATE_FAILED = "UPDATE_FAILED"
    DELETE_FAILED = "DELETE_FAILED"
    SEARCH_FAILED = "SEARCH_FAILED"
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
    UNKNOWN_PROVIDER = "UNKNOWN_PROVIDER"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


class CRMError(AgentError):
    """Error raised by CRM providers and the CRM agent."""

    def __init__(
        self,
        message: str,
        code: str,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.provider = provider

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["provider"] = self.provider
        return result


class OAuthCredentials(BaseModel):
    client_id: str
    client_secret: str
    refresh_token: str


class CRMConfig(BaseModel):
    """Connection settings of a CRM provider."""

    provider: CRMProviderType
    api_key: Optional[str] = Field(default=None, description="API key, or 'username:password' for Salesforce")
    oauth: Optional[OAuthCredentials] = None
    access_token: Optional[str] = Field(default=None, description="Pre-issued access token")
    instance_url: Optional[str] = Field(default=None, description="Instance URL matching the access token")
    endpoint: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class CRMOperation(str, Enum):
    """Operations dispatched by the CRM agent."""

    CREATE_LEAD = "create_lead"
    GET_LEAD = "get_lead"
    UPDATE_LEAD = "update_lead"
    DELETE_LEAD = "delete_lead"
    SEARCH_LEADS = "search_leads"
    CREATE_CONTACT = "create_contact"
    GET_CONTACT = "get_contact"
    UPDATE_CONTACT = "update_contact"
    CREATE_OPPORTUNITY = "create_opportunity"
    GET_OPPORTUNITY = "get_opportunity"
    CREATE_ACCOUNT = "create_account"
    GET_ACCOUNT = "get_account"


class CRMOperationInput(BaseModel):
    """Input of one CRM agent execution."""

    operation: str
    data: Any = None


class CRMLead(Lead):
    email: Optional[str] = None
    provider_id: Optional[str] = None
    provider: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


class CRMContact(Contact):
    email: Optional[str] = None
    provider_id: Optional[str] = None
    provider: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class Opportunity(BaseModel):
    """A potential deal."""

    id: Optional[str] = None
    name: str
    amount: Optional[float] = None
    stage: Optional[str] = None
    close_date: Optional[date] = None
    account_id: Optional[str] = None
    contact_id: Optional[str] = None
    probability: Optional[float] = Field(default=None, ge=0, le=100)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    provider_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Account(BaseModel):
    """A company tracked in the CRM."""

    id: Optional[str] = None
    name: str
    industry: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    employees: Optional[int] = None
    revenue: Optional[float] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    provider_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SearchCriteria(BaseModel):
    """Lead search parameters."""

    query: Optional[str] = Field(default=None, description="Free text matched against email and company")
    filters: Dict[str, Any] = Field(default_factory=dict)
    sort_by: Optional[str] = None
    sort_order: Literal["asc", "desc"] = "asc"
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v):
        return v.lower() if isinstance(v, str) else v


class SearchResult(BaseModel):
    """One page of search results."""

    results: List[Any] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    next_offset: Optional[int] = None
