from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Literal
from datetime import datetime, timezone

AssetStatus = Literal["available", "loaned", "out_of_use", "maintenance", "reserve", "lost"]
Category = Literal["computer", "laptop", "monitor", "printer", "pc_only", "network", "other"]
LoanState = Literal["borrowed", "returned"]

def parse_date_only(value):
    # "YYYY-MM-DD" from date inputs means midnight of that day
    if isinstance(value, str) and len(value) == 10:
        return datetime.fromisoformat(value)
    if value == "":
        return None
    return value

def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # columns hold naive UTC, same clock as utcnow()
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

STATUS_AVAILABLE = "available"
STATUS_LOANED = "loaned"
LOAN_BORROWED = "borrowed"
LOAN_RETURNED = "returned"

class StrictBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

# ---------- Asset ----------
class AssetIn(StrictBody):
    name: str = Field(min_length=1)
    asset_tag: str = Field(min_length=1)
    description: Optional[str] = None
    category: Category = "other"
    status: AssetStatus = STATUS_AVAILABLE
    image_url: Optional[str] = None

class AssetUpdate(StrictBody):
    name: Optional[str] = Field(default=None, min_length=1)
    asset_tag: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[Category] = None
    status: Optional[AssetStatus] = None
    image_url: Optional[str] = None

class Asset(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    asset_tag: str
    description: Optional[str] = None
    category: str
    status: str
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class AssetsMeta(BaseModel):
    total: int
    limit: int
    offset: int
    total_pages: int

# ---------- Borrower ----------
class BorrowerIn(StrictBody):
    full_name: str = Field(min_length=1)
    department: str = Field(min_length=1)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

class BorrowerUpdate(StrictBody):
    full_name: Optional[str] = Field(default=None, min_length=1)
    department: Optional[str] = Field(default=None, min_length=1)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

class Borrower(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    department: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    created_at: datetime
    updated_at: datetime

# ---------- Loan ----------
class LoanCreate(StrictBody):
    asset_id: int = Field(gt=0)
    borrower_id: int = Field(gt=0)
    expected_return_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("expected_return_at", mode="before")
    @classmethod
    def parse_expected_return_at(cls, v):
        return parse_date_only(v)

    @field_validator("expected_return_at")
    @classmethod
    def expected_return_at_to_utc(cls, v):
        return to_naive_utc(v)

class LoanUpdate(StrictBody):
    state: Optional[LoanState] = None
    returned_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("returned_at", mode="before")
    @classmethod
    def parse_returned_at(cls, v):
        return parse_date_only(v)

    @field_validator("returned_at")
    @classmethod
    def returned_at_to_utc(cls, v):
        return to_naive_utc(v)

class Loan(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_id: int
    borrower_id: int
    borrowed_at: datetime
    returned_at: Optional[datetime] = None
    state: LoanState
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class LoanDetail(Loan):
    asset: Asset
    borrower: Borrower

class Message(BaseModel):
    message: str
