"""Pydantic models for JSON response bodies."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PurgeOutcome(str, Enum):
    """Result of deleting a cache entry."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PurgeResponse(BaseModel):
    """Body returned by an authorized purge."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Cache purge completed"
    path: str
    purge_result: PurgeOutcome = Field(alias="purgeResult")
    purged_cache_key: str = Field(alias="purgedCacheKey")


class ErrorResponse(BaseModel):
    """Body returned for rejected requests."""

    error: str
