"""Base model configuration for API payloads."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model for server responses.

    Responses carry more fields than the client reads; unknown keys are
    ignored so newer servers keep working.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")
