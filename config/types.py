from typing import Optional
from pydantic import BaseModel, Field


class RetrySettings(BaseModel):
    """Default retry behaviour applied to agents that do not configure one"""

    max_attempts: int = Field(default=3, ge=1)
    delay: float = Field(default=1.0, ge=0)
    backoff: str = "exponential"
    max_delay: Optional[float] = Field(default=None, ge=0)


class AgentDefaults(BaseModel):
    """Default agent execution settings"""

    timeout: float = Field(default=30.0, gt=0)
    retry: RetrySettings = Field(default_factory=RetrySettings)


class WorkflowDefaults(BaseModel):
    """Default workflow execution settings"""

    timeout: float = Field(default=300.0, gt=0)
    on_error: str = "stop"


class SalesforceCredentials(BaseModel):
    """Salesforce connection parameters read from SALESFORCE_* variables"""

    api_key: Optional[str] = None  # "username:password"
    login_url: str = "https://login.salesforce.com"
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    api_version: str = "59.0"
