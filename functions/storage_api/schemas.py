"""
Pydantic schemas for the storage API responses.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DiagnosticInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_database_config: bool = Field(..., alias="hasDatabaseConfig")
    has_postgres_url: bool = Field(..., alias="has_POSTGRES_URL")
    has_postgres_prisma_url: bool = Field(..., alias="has_POSTGRES_PRISMA_URL")
    has_postgres_url_non_pooling: bool = Field(
        ..., alias="has_POSTGRES_URL_NON_POOLING"
    )
    has_postgres_host: bool = Field(..., alias="has_POSTGRES_HOST")
    has_database_url: bool = Field(..., alias="has_DATABASE_URL")
    python: str


class DiagnosticResponse(BaseModel):
    ok: Literal[True] = True
    diag: DiagnosticInfo


class StorageReadResponse(BaseModel):
    ok: Literal[True] = True
    kv: dict[str, Any]


class OkResponse(BaseModel):
    ok: bool


class ErrorDetails(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None


class ErrorResponse(BaseModel):
    ok: Literal[False] = False
    error: str
    message: Optional[str] = None
    details: Optional[ErrorDetails] = None
