"""Pydantic schemas for request/response validation."""
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class LookupRequest(BaseModel):
    """Request body for POST /api/v1/ext/winloseEsByMonthMulti."""
    model_config = ConfigDict(extra="ignore")

    cur: Optional[str] = Field(None, description="Currency code (primary alias)")
    currency: Optional[str] = Field(None, description="Currency code (secondary alias)")
    month: Optional[str] = Field(None, description="Month, '1' or '01' style")
    year: Optional[str] = None
    username: Optional[str] = None
    web: Optional[str] = Field(None, description="Client web / client_name")


class SnapshotRecord(BaseModel):
    """
    One member-level entry inside a snapshot's data.

    Decoding is loose: unknown fields are dropped and missing or null
    fields fall back to empty strings and zeros.
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    username: str = ""
    prefix: Optional[str] = None
    currency: str = ""
    web: str = ""
    month: str = ""
    year: str = ""
    betAmt: float = 0.0
    validAmount: float = 0.0
    memberWl: float = 0.0
    memberComm: float = 0.0
    memberTotal: float = 0.0

    @field_validator("username", "currency", "web", "month", "year", mode="before")
    @classmethod
    def _null_text_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("betAmt", "validAmount", "memberWl", "memberComm", "memberTotal", mode="before")
    @classmethod
    def _null_amount_is_zero(cls, value):
        return 0.0 if value is None else value


# A snapshot's data holds either one record or an ordered list of them.
SnapshotData = TypeAdapter(Union[list[SnapshotRecord], SnapshotRecord])


class WinLoseData(BaseModel):
    """Record fields returned by the lookup endpoint."""
    username: str
    prefix: Optional[str]
    currency: str
    betAmt: float
    validAmount: float
    memberWl: float
    memberComm: float
    memberTotal: float


class WinLoseResponse(BaseModel):
    """Response body for POST /api/v1/ext/winloseEsByMonthMulti."""
    code: int = 0
    msg: str = "SUCCESS"
    data: WinLoseData


class InsertResponse(BaseModel):
    """Response body for POST /api/v1/ext/insertSnapshot."""
    code: int = 0
    msg: str = "SUCCESS"
    insertedId: Any


class UpdateRequest(BaseModel):
    """Request body for POST /api/v1/ext/updateSnapshot."""
    filter: dict[str, Any] = Field(..., min_length=1)
    update: dict[str, Any] = Field(..., min_length=1)
    upsert: bool = False


class UpdateResponse(BaseModel):
    """Response body for POST /api/v1/ext/updateSnapshot."""
    code: int = 0
    msg: str = "SUCCESS"
    matched: int
    modified: int
    upserted: Any = None


class DeleteRequest(BaseModel):
    """Request body for POST /api/v1/ext/deleteSnapshot."""
    filter: dict[str, Any] = Field(..., min_length=1)


class DeleteResponse(BaseModel):
    """Response body for POST /api/v1/ext/deleteSnapshot."""
    code: int = 0
    msg: str = "SUCCESS"
    deleted: int
