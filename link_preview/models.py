"""
Link Preview Service Pydantic Models.

Preview records plus request and response models for the HTTP API.
Wire names are camelCase (``siteName``, ``isScreenshot``, ``fromCache``).
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PreviewRecord(BaseModel):
    """Normalized link-preview metadata for one page."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, description="Page title")
    description: Optional[str] = Field(default=None, description="Page description")
    image: Optional[str] = Field(
        default=None,
        description="Preview image URL or inline data URI",
    )
    site_name: Optional[str] = Field(default=None, alias="siteName", description="Site name")
    icon: Optional[str] = Field(default=None, description="Absolute favicon URL")
    url: str = Field(..., description="Final URL after redirects")
    is_screenshot: bool = Field(
        default=False,
        alias="isScreenshot",
        description="Whether image is a captured screenshot",
    )


@dataclass
class PreviewResult:
    """Outcome of a get-or-generate call."""

    url: str
    record: PreviewRecord
    from_cache: bool


@dataclass
class CacheEntry:
    """A decoded cache entry returned by a prefix listing."""

    key: str
    url: Optional[str]
    record: PreviewRecord


@dataclass
class CacheListing:
    """Result of listing cache entries by prefix."""

    entries: List[CacheEntry] = field(default_factory=list)
    invalid_keys: List[str] = field(default_factory=list)


# ============================================================================
# API REQUEST MODELS
# ============================================================================


class PreviewRequest(BaseModel):
    """Request model for a single preview."""

    url: Optional[str] = Field(default=None, description="URL to preview")


class BatchPreviewRequest(BaseModel):
    """Request model for batch previews."""

    urls: Optional[Union[str, List[Optional[str]]]] = Field(
        default=None,
        description="One URL or a list of up to 10 URLs",
    )


class CacheClearRequest(BaseModel):
    """Request model for clearing one cached preview."""

    url: Optional[str] = Field(default=None, description="URL whose preview to evict")


# ============================================================================
# API RESPONSE MODELS
# ============================================================================


class BatchPreviewSuccess(BaseModel):
    """Batch entry for a URL whose preview was produced."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    data: PreviewRecord
    from_cache: bool = Field(default=False, alias="fromCache")


class BatchPreviewFailure(BaseModel):
    """Batch entry for a URL that failed."""

    url: str
    error: str
    details: Optional[str] = None
    type: str = "UNKNOWN_ERROR"


BatchResult = Union[BatchPreviewSuccess, BatchPreviewFailure]


class CacheKeyEntry(BaseModel):
    """One entry of the cache-keys listing."""

    key: str
    url: Optional[str] = Field(default=None, description="URL decoded from the key")
    value: PreviewRecord


class CacheClearResponse(BaseModel):
    status: str = "cache cleared"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy", description="Service status")
    cache_state: str = Field(..., description="Cache connection state")
