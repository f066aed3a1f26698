"""Configuration for the Magic Pod API client."""

from collections.abc import Mapping

from pydantic import BaseModel, Field, SecretStr

DEFAULT_URL_BASE = "https://magic-pod.com"


class ClientConfig(BaseModel):
    """Connection settings shared by every API call."""

    token: SecretStr
    organization: str = Field(..., min_length=1)
    project: str = Field(..., min_length=1)
    url_base: str = DEFAULT_URL_BASE
    http_headers: Mapping[str, str] = Field(default_factory=dict)

    @property
    def api_base_url(self) -> str:
        """Root of the versioned API, with a trailing slash for relative joins."""
        return f"{self.url_base.rstrip('/')}/api/v1.0/"
