"""Salesforce CRM provider.

Talks to the Salesforce REST API with aiohttp. Authentication uses, in order
of preference, a pre-issued access token, the OAuth refresh token flow or the
username/password flow (api_key "username:password").
"""

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from config import env_manager
from cognio_core.schemas import Contact, CRMProviderType, Lead
from ..types import (
    Account,
    Address,
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

LEAD_FIELDS = [
    "Id",
    "FirstName",
    "LastName",
    "Email",
    "Phone",
    "Company",
    "Title",
    "Industry",
    "LeadSource",
    "Status",
    "CreatedDate",
    "LastModifiedDate",
]

# Salesforce API field names, optionally relationship paths
FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class SalesforceRequestError(Exception):
    """Non-success response from the Salesforce API."""

    def __init__(self, status: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(f"Salesforce API returned {status}: {message}")
        self.status = status
        self.errors = errors or []


def soql_literal(value: Any, like: bool = False) -> str:
    """
    Render a Python value as a SOQL literal.

    Args:
        value: Value to render
        like: Escape LIKE wildcards in string values

    Returns:
        SOQL literal text
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    if like:
        text = text.replace("%", "\\%").replace("_", "\\_")
    return f"'{text}'"


def _check_field_name(name: str) -> str:
    if not FIELD_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid Salesforce field name: {name}")
    return name


def build_lead_query(criteria: SearchCriteria) -> str:
    """Build the SOQL query for a lead search."""
    query = f"SELECT {', '.join(LEAD_FIELDS)} FROM Lead"

    conditions = []
    if criteria.query:
        pattern = soql_literal(criteria.query, like=True)[1:-1]
        conditions.append(f"(Email LIKE '%{pattern}%' OR Company LIKE '%{pattern}%')")

    for name, value in criteria.filters.items():
        conditions.append(f"{_check_field_name(name)} = {soql_literal(value)}")

    if conditions:
        query += " WHERE " + " AND ".join(conditions)

    if criteria.sort_by:
        query += f" ORDER BY {_check_field_name(criteria.sort_by)} {criteria.sort_order.upper()}"

    query += f" LIMIT {criteria.limit}"

    if criteria.offset:
        query += f" OFFSET {criteria.offset}"

    return query


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    logger.debug(f"Unrecognized Salesforce timestamp: {value}")
    return None


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _drop_none(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in record.items() if value is not None}


def _split_name(name: Optional[str]) -> List[Optional[str]]:
    if not name:
        return [None, None]
    parts = name.split(" ")
    return [parts[0], " ".join(parts[1:]) or None]


def to_salesforce_lead(lead: Lead) -> Dict[str, Any]:
    return _drop_none({
        "FirstName": lead.first_name,
        "LastName": lead.last_name or "Unknown",
        "Email": lead.email,
        "Phone": lead.phone,
        "Company": lead.company or "Unknown",
        "Title": lead.title,
        "Industry": lead.industry,
        "LeadSource": lead.source,
        "Status": lead.status or "New",
        **lead.custom_fields,
    })


LEAD_UPDATE_FIELDS = {
    "first_name": "FirstName",
    "last_name": "LastName",
    "email": "Email",
    "phone": "Phone",
    "company": "Company",
    "title": "Title",
    "industry": "Industry",
    "source": "LeadSource",
    "status": "Status",
}


def from_salesforce_lead(record: Dict[str, Any]) -> CRMLead:
    return CRMLead(
        id=record.get("Id"),
        provider_id=record.get("Id"),
        provider=CRMProviderType.SALESFORCE.value,
        first_name=record.get("FirstName"),
        last_name=record.get("LastName"),
        email=record.get("Email"),
        phone=record.get("Phone"),
        company=record.get("Company"),
        title=record.get("Title"),
        industry=record.get("Industry"),
        source=record.get("LeadSource"),
        status=record.get("Status"),
        created_at=_parse_datetime(record.get("CreatedDate")),
        updated_at=_parse_datetime(record.get("LastModifiedDate")),
        raw=record,
    )


def from_salesforce_contact(record: Dict[str, Any]) -> CRMContact:
    name = f"{record.get('FirstName') or ''} {record.get('LastName') or ''}".strip()
    return CRMContact(
        id=record.get("Id"),
        provider_id=record.get("Id"),
        provider=CRMProviderType.SALESFORCE.value,
        email=record.get("Email"),
        name=name or None,
        phone=record.get("Phone"),
        raw=record,
    )


def from_salesforce_opportunity(record: Dict[str, Any]) -> Opportunity:
    return Opportunity(
        id=record.get("Id"),
        provider_id=record.get("Id"),
        name=record.get("Name") or "",
        amount=record.get("Amount"),
        stage=record.get("StageName"),
        close_date=_parse_date(record.get("CloseDate")),
        account_id=record.get("AccountId"),
        contact_id=record.get("ContactId"),
        probability=record.get("Probability"),
        created_at=_parse_datetime(record.get("CreatedDate")),
        updated_at=_parse_datetime(record.get("LastModifiedDate")),
    )


def from_salesforce_account(record: Dict[str, Any]) -> Account:
    return Account(
        id=record.get("Id"),
        provider_id=record.get("Id"),
        name=record.get("Name") or "",
        industry=record.get("Industry"),
        website=record.get("Website"),
        phone=record.get("Phone"),
        employees=record.get("NumberOfEmployees"),
        revenue=record.get("AnnualRevenue"),
        address=Address(
            street=record.get("BillingStreet"),
            city=record.get("BillingCity"),
            state=record.get("BillingState"),
            postal_code=record.get("BillingPostalCode"),
            country=record.get("BillingCountry"),
        ),
        created_at=_parse_datetime(record.get("CreatedDate")),
        updated_at=_parse_datetime(record.get("LastModifiedDate")),
    )


class SalesforceProvider(BaseCRMProvider):
    """
    Salesforce provider over the REST API.

    Options read from ``config.options`` (falling back to SALESFORCE_*
    environment settings): ``login_url``, ``api_version``, and for the
    username/password flow ``client_id`` and ``client_secret``.

    Example:
        provider = SalesforceProvider(CRMConfig(provider="salesforce", oauth=...))
        await provider.initialize()
        lead = await provider.create_lead(Lead(email="jane@acme.com"))
        await provider.close()
    """

    def __init__(
        self,
        config: CRMConfig,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 30.0,
    ):
        """
        Initialize the provider.

        Args:
            config: CRM settings
            session: Existing aiohttp session to use. It is not closed by the
                provider.
            request_timeout: Per request timeout in seconds
        """
        super().__init__(config.model_copy(update={"provider": CRMProviderType.SALESFORCE}))

        credentials = env_manager.get_salesforce_parameters()
        options = self.config.options
        self.login_url = (options.get("login_url") or credentials.login_url).rstrip("/")
        self.api_version = str(options.get("api_version") or credentials.api_version)
        self.client_id = options.get("client_id") or credentials.client_id
        self.client_secret = options.get("client_secret") or credentials.client_secret
        self.request_timeout = request_timeout

        self.access_token: Optional[str] = None
        self.instance_url: Optional[str] = None

        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> None:
        """Create the HTTP session when none was provided."""
        if self._session is not None:
            return

        timeout = aiohttp.ClientTimeout(total=float(self.request_timeout))
        self._session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False)
        self._owns_session = True
        logger.debug("Initialized Salesforce HTTP session")

    async def _cleanup_session(self) -> None:
        """Close the HTTP session if the provider created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
            logger.debug("Cleaned up Salesforce HTTP session")

    async def initialize(self) -> None:
        self.validate_config()

        try:
            await self._initialize_session()

            if self.config.access_token:
                if not self.config.instance_url:
                    raise ValueError("instance_url is required with a pre-issued access token")
                self.access_token = self.config.access_token
                self.instance_url = self.config.instance_url.rstrip("/")
            elif self.config.oauth:
                await self._authenticate(
                    {
                        "grant_type": "refresh_token",
                        "client_id": self.config.oauth.client_id,
                        "client_secret": self.config.oauth.client_secret,
                        "refresh_token": self.config.oauth.refresh_token,
                    }
                )
            else:
                username, _, password = (self.config.api_key or "").partition(":")
                if not username or not password:
                    raise ValueError("api_key must have the form 'username:password'")
                await self._authenticate(
                    {
                        "grant_type": "password",
                        "client_id": self.client_id or "",
                        "client_secret": self.client_secret or "",
                        "username": username,
                        "password": password,
                    }
                )

            self.initialized = True
            logger.info(f"Connected to Salesforce instance {self.instance_url}")

        except Exception as e:
            await self._cleanup_session()
            raise CRMError(
                "Failed to initialize Salesforce",
                CRMErrorCode.INIT_FAILED,
                self.provider_name,
                {"original_error": e},
            )

    async def _authenticate(self, form: Dict[str, str]) -> None:
        url = f"{self.login_url}/services/oauth2/token"
        async with self._session.post(url, data=form) as response:
            response_text = await response.text()
            if response.status != 200:
                raise SalesforceRequestError(response.status, response_text)
            payload = json.loads(response_text)

        self.access_token = payload["access_token"]
        self.instance_url = payload["instance_url"].rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Call the versioned REST API.

        Args:
            method: HTTP method
            path: Path below /services/data/vXX.X
            params: Query parameters
            payload: JSON body

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            SalesforceRequestError: On a non-2xx status
        """
        url = f"{self.instance_url}/services/data/v{self.api_version}{path}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

        request_kwargs: Dict[str, Any] = {"headers": headers}
        if params is not None:
            request_kwargs["params"] = params
        if payload is not None:
            request_kwargs["json"] = payload

        async with self._session.request(method=method.upper(), url=url, **request_kwargs) as response:
            response_text = await response.text()
            status_code = response.status

        logger.debug(f"{method.upper()} {path} -> {status_code}")

        if status_code >= 400:
            try:
                errors = json.loads(response_text) if response_text else []
            except json.JSONDecodeError:
                errors = []
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                message = "; ".join(str(error.get("message")) for error in errors)
            else:
                message = response_text or "empty response"
            raise SalesforceRequestError(status_code, message, errors if isinstance(errors, list) else [])

        if not response_text:
            return None
        return json.loads(response_text)

    async def _create(self, sobject: str, record: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._request("POST", f"/sobjects/{sobject}/", payload=record)
        if not result or not result.get("success", False):
            errors = (result or {}).get("errors") or ["Unknown error"]
            raise RuntimeError(", ".join(str(error) for error in errors))
        return result

    @staticmethod
    def _record_path(sobject: str, id: str) -> str:
        return f"/sobjects/{sobject}/{quote(str(id), safe='')}"

    async def _retrieve(self, sobject: str, id: str) -> Dict[str, Any]:
        return await self._request("GET", self._record_path(sobject, id))

    async def _update(self, sobject: str, id: str, record: Dict[str, Any]) -> None:
        await self._request("PATCH", self._record_path(sobject, id), payload=record)

    def _failure(self, message: str, code: str, error: Exception) -> CRMError:
        logger.warning(f"{message}: {error}")
        return CRMError(message, code, self.provider_name, {"original_error": error})

    async def create_lead(self, lead: Lead) -> CRMLead:
        self.ensure_initialized()

        try:
            result = await self._create("Lead", to_salesforce_lead(lead))
        except Exception as e:
            raise self._failure("Failed to create lead", CRMErrorCode.CREATE_FAILED, e)

        return CRMLead(
            **lead.model_dump(exclude={"id", "provider_id", "provider", "raw"}),
            id=result["id"],
            provider_id=result["id"],
            provider=self.provider_name,
            raw=result,
        )

    async def get_lead(self, id: str) -> CRMLead:
        self.ensure_initialized()

        try:
            return from_salesforce_lead(await self._retrieve("Lead", id))
        except Exception as e:
            raise self._failure("Failed to get lead", CRMErrorCode.READ_FAILED, e)

    async def update_lead(self, id: str, updates: Dict[str, Any]) -> CRMLead:
        self.ensure_initialized()

        record = {
            LEAD_UPDATE_FIELDS[key]: value
            for key, value in updates.items()
            if key in LEAD_UPDATE_FIELDS and value is not None
        }
        record.update(updates.get("custom_fields") or {})

        try:
            await self._update("Lead", id, record)
        except Exception as e:
            raise self._failure("Failed to update lead", CRMErrorCode.UPDATE_FAILED, e)

        return await self.get_lead(id)

    async def delete_lead(self, id: str) -> None:
        self.ensure_initialized()

        try:
            await self._request("DELETE", self._record_path("Lead", id))
        except Exception as e:
            raise self._failure("Failed to delete lead", CRMErrorCode.DELETE_FAILED, e)

    async def search_leads(self, criteria: SearchCriteria) -> SearchResult:
        self.ensure_initialized()

        try:
            query = build_lead_query(criteria)
            result = await self._request("GET", "/query", params={"q": query})
        except Exception as e:
            raise self._failure("Failed to search leads", CRMErrorCode.SEARCH_FAILED, e)

        leads = [from_salesforce_lead(record) for record in result.get("records", [])]
        return SearchResult(
            results=leads,
            total=result.get("totalSize", len(leads)),
            has_more=not result.get("done", True),
            next_offset=criteria.offset + len(leads),
        )

    async def create_contact(self, contact: Contact) -> CRMContact:
        self.ensure_initialized()

        first_name, last_name = _split_name(contact.name)
        record = _drop_none({
            "Email": contact.email,
            "FirstName": first_name,
            "LastName": last_name or "Unknown",
            "Phone": contact.phone,
            **contact.custom_fields,
        })

        try:
            result = await self._create("Contact", record)
        except Exception as e:
            raise self._failure("Failed to create contact", CRMErrorCode.CREATE_FAILED, e)

        return CRMContact(
            **contact.model_dump(exclude={"id", "provider_id", "provider", "raw"}),
            id=result["id"],
            provider_id=result["id"],
            provider=self.provider_name,
            raw=result,
        )

    async def get_contact(self, id: str) -> CRMContact:
        self.ensure_initialized()

        try:
            return from_salesforce_contact(await self._retrieve("Contact", id))
        except Exception as e:
            raise self._failure("Failed to get contact", CRMErrorCode.READ_FAILED, e)

    async def update_contact(self, id: str, updates: Dict[str, Any]) -> CRMContact:
        self.ensure_initialized()

        record = _drop_none({"Email": updates.get("email"), "Phone": updates.get("phone")})
        if updates.get("name"):
            first_name, last_name = _split_name(updates["name"])
            record["FirstName"] = first_name
            record["LastName"] = last_name or ""
        record.update(updates.get("custom_fields") or {})

        try:
            await self._update("Contact", id, record)
        except Exception as e:
            raise self._failure("Failed to update contact", CRMErrorCode.UPDATE_FAILED, e)

        return await self.get_contact(id)

    async def create_opportunity(self, opportunity: Opportunity) -> Opportunity:
        self.ensure_initialized()

        record = _drop_none({
            "Name": opportunity.name,
            "Amount": opportunity.amount,
            "StageName": opportunity.stage or "Prospecting",
            "CloseDate": (opportunity.close_date or date.today()).isoformat(),
            "AccountId": opportunity.account_id,
            "Probability": opportunity.probability,
            **opportunity.custom_fields,
        })

        try:
            result = await self._create("Opportunity", record)
        except Exception as e:
            raise self._failure("Failed to create opportunity", CRMErrorCode.CREATE_FAILED, e)

        return opportunity.model_copy(update={"id": result["id"], "provider_id": result["id"]})

    async def get_opportunity(self, id: str) -> Opportunity:
        self.ensure_initialized()

        try:
            return from_salesforce_opportunity(await self._retrieve("Opportunity", id))
        except Exception as e:
            raise self._failure("Failed to get opportunity", CRMErrorCode.READ_FAILED, e)

    async def create_account(self, account: Account) -> Account:
        self.ensure_initialized()

        record = {
            "Name": account.name,
            "Industry": account.industry,
            "Website": account.website,
            "Phone": account.phone,
            "NumberOfEmployees": account.employees,
            "AnnualRevenue": account.revenue,
            **account.custom_fields,
        }
        if account.address:
            record.update({
                "BillingStreet": account.address.street,
                "BillingCity": account.address.city,
                "BillingState": account.address.state,
                "BillingPostalCode": account.address.postal_code,
                "BillingCountry": account.address.country,
            })

        try:
            result = await self._create("Account", _drop_none(record))
        except Exception as e:
            raise self._failure("Failed to create account", CRMErrorCode.CREATE_FAILED, e)

        return account.model_copy(update={"id": result["id"], "provider_id": result["id"]})

    async def get_account(self, id: str) -> Account:
        self.ensure_initialized()

        try:
            return from_salesforce_account(await self._retrieve("Account", id))
        except Exception as e:
            raise self._failure("Failed to get account", CRMErrorCode.READ_FAILED, e)

    async def close(self) -> None:
        await self._cleanup_session()
        self.access_token = None
        self.instance_url = None
        await super().close()
