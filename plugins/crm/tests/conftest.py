"""
Shared fixtures for CRM plugin tests.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from cognio_core.schemas import CRMProviderType, Lead
from cognio_core.types import RetryConfig
from plugins.crm.agent import CRMAgent
from plugins.crm.providers import InMemoryCRMProvider, SalesforceProvider
from plugins.crm.types import CRMConfig


@pytest.fixture
def memory_provider():
    """Uninitialized in-memory provider."""
    return InMemoryCRMProvider()


@pytest.fixture
def crm_agent(memory_provider):
    """CRM agent backed by the in-memory provider, without retries."""
    return CRMAgent(
        {
            "name": "test-crm",
            "crm": {"provider": "custom"},
            "timeout": 5.0,
            "retry": RetryConfig(max_attempts=1),
        },
        provider=memory_provider,
    )


@pytest.fixture
def sample_lead():
    return Lead(
        first_name="Jane",
        last_name="Smith",
        email="jane.smith@acme.com",
        company="Acme Corporation",
        title="CTO",
        industry="Technology",
        score=80,
    )


@pytest.fixture
def salesforce_config():
    return CRMConfig(
        provider=CRMProviderType.SALESFORCE,
        access_token="test-token",
        instance_url="https://acme.my.salesforce.com/",
    )


@pytest.fixture
def mock_session():
    """aiohttp session whose responses are queued with ``queue_response``."""
    session = MagicMock()
    session.close = AsyncMock()
    session.responses = []

    def make_context(*args, **kwargs):
        status, body = session.responses.pop(0)
        response = MagicMock()
        response.status = status
        response.text = AsyncMock(return_value=body if isinstance(body, str) else json.dumps(body))

        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=response)
        context.__aexit__ = AsyncMock(return_value=None)
        return context

    def queue_response(status, body=""):
        session.responses.append((status, body))

    session.request = MagicMock(side_effect=make_context)
    session.post = MagicMock(side_effect=make_context)
    session.queue_response = queue_response
    return session


@pytest.fixture
def salesforce_provider(salesforce_config, mock_session):
    """Salesforce provider using the mocked session and a pre-issued token."""
    with patch("plugins.crm.providers.salesforce.env_manager") as mock_env_manager:
        mock_env_manager.get_salesforce_parameters.return_value = MagicMock(
            login_url="https://login.salesforce.com",
            api_version="59.0",
            client_id=None,
            client_secret=None,
        )
        provider = SalesforceProvider(salesforce_config, session=mock_session)
    return provider
