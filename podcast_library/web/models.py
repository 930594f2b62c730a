"""
Pydantic models for web API responses.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from podcast_library.library.synchronizer import SyncResult


class CleanupResponse(BaseModel):
    """Response model for the bulk cleanup endpoint."""
    files_deleted: int = Field(..., description="Number of episode files deleted")


class RefreshResponse(BaseModel):
    """Response model for a manually triggered refresh cycle."""
    feeds_processed: int = Field(default=0, description="Feeds mirrored successfully")
    feeds_failed: int = Field(default=0, description="Feeds that could not be parsed")
    episodes_processed: int = Field(default=0, description="Episodes materialized")
    episodes_failed: int = Field(default=0, description="Episodes that failed")
    files_deleted: int = Field(default=0, description="Files removed by retention cleanup")
    errors: List[str] = Field(default_factory=list, description="Error messages")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "feeds_processed": 3,
                "feeds_failed": 0,
                "episodes_processed": 120,
                "episodes_failed": 1,
                "files_deleted": 0,
                "errors": ["Error creating files for episode Pilot: disk full"],
            }
        }
    )

    @classmethod
    def from_result(cls, result: SyncResult) -> "RefreshResponse":
        return cls(
            feeds_processed=result.feeds_processed,
            feeds_failed=result.feeds_failed,
            episodes_processed=result.episodes_processed,
            episodes_failed=result.episodes_failed,
            files_deleted=result.files_deleted,
            errors=result.errors,
        )


class HealthResponse(BaseModel):
    """Response model for the health check."""
    status: str = Field(default="healthy")
    service: str = Field(default="podcast-library")
