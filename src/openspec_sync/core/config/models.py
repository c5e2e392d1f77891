"""
Configuration data models for openspec-sync.

These models define the structure of ~/.config/openspec-sync/config.json,
with validation and type safety via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ATTACHMENT_NAME = "openspec.zip"
DEFAULT_SPEC_DIR = "openspec"


class JiraConfig(BaseModel):
    """
    Jira Cloud credentials.

    All three fields are needed to talk to Jira. A partially filled record
    is allowed to load (so `config show` can display it) but is never used
    to build a client.
    """
    model_config = ConfigDict(populate_by_name=True)

    host: Optional[str] = Field(
        default=None,
        description="Jira site host, e.g. 'acme.atlassian.net'"
    )
    email: Optional[str] = Field(
        default=None,
        description="Account email used for basic auth"
    )
    api_token: Optional[str] = Field(
        default=None,
        alias="apiToken",
        description="Atlassian API token"
    )

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, v: Optional[str]) -> Optional[str]:
        """Accept 'https://acme.atlassian.net/' and store the bare host."""
        if v is None:
            return v
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        return v.rstrip("/") or None

    @property
    def is_complete(self) -> bool:
        """True when host, email and API token are all set."""
        return bool(self.host and self.email and self.api_token)


class AppConfig(BaseModel):
    """
    Top-level openspec-sync configuration.

    Example:
        >>> config = AppConfig(jira=JiraConfig(host="acme.atlassian.net"))
        >>> config.attachment_name
        'openspec.zip'
    """
    model_config = ConfigDict(extra="ignore")

    jira: Optional[JiraConfig] = Field(
        default=None,
        description="Jira credentials"
    )
    spec_dir: str = Field(
        default=DEFAULT_SPEC_DIR,
        description="Spec folder to sync, relative to the repository root"
    )
    attachment_name: str = Field(
        default=DEFAULT_ATTACHMENT_NAME,
        description="Reserved filename identifying the spec archive on a ticket"
    )
