from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator, model_validator
from typing import Optional, Literal, List
from datetime import datetime

PartyType = Literal["customer", "supplier"]
Direction = Literal["gave", "got"]


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Authentication and Users
class User(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Unique email, stored lower-cased")
    password_hash: str = Field(..., description="Derived hash of password")
    password_salt: str = Field(..., description="Salt for PBKDF2")
    role: Literal["admin", "user"] = Field("user", description="Global role; workspace access comes from membership")
    is_active: bool = Field(True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _lower(value)

    def public(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}


class Session(BaseModel):
    user_id: str
    token: str
    created_at: Optional[datetime] = None


class Actor(BaseModel):
    """Authenticated caller. Email may be absent for tokens issued without one."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None


# Core domain
class Membership(BaseModel):
    user_email: EmailStr
    role: Literal["owner", "member"] = "member"

    @field_validator("user_email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _lower(value)


class Workspace(BaseModel):
    id: Optional[str] = None
    name: str
    owner_id: str
    members: List[Membership] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class Party(BaseModel):
    id: Optional[str] = None
    workspace_id: str
    name: str
    phone: Optional[str] = None
    type: PartyType
    created_at: Optional[datetime] = None


class Transaction(BaseModel):
    id: Optional[str] = None
    workspace_id: str
    party_id: str
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    direction: Direction
    description: Optional[str] = None
    date: datetime
    bill_image_url: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None


# Derived views
class PartyBalance(BaseModel):
    will_give: float = 0.0
    will_get: float = 0.0


class PartyWithTotals(Party):
    will_give: float = 0.0
    will_get: float = 0.0


class PartyDetail(PartyWithTotals):
    transactions: List[Transaction] = Field(default_factory=list)


class WorkspaceSummary(BaseModel):
    totals: PartyBalance
    recent: List[Transaction]


# Request payloads
class RegisterPayload(BaseModel):
    name: str = Field(..., min_length=2, max_length=60)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class TokenResponse(BaseModel):
    token: str
    user: dict


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=2)
    members: List[EmailStr] = Field(default_factory=list)


class PartyCreate(BaseModel):
    name: str = Field(..., min_length=2)
    phone: Optional[str] = None
    type: PartyType

    @field_validator("phone", mode="before")
    @classmethod
    def blank_phone(cls, value):
        return _blank_to_none(value)


class TransactionCreate(BaseModel):
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    direction: Direction
    description: Optional[str] = None
    date: datetime
    bill_image_url: Optional[str] = None

    @field_validator("bill_image_url", mode="before")
    @classmethod
    def blank_bill_image_url(cls, value):
        return _blank_to_none(value)


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    direction: Optional[Direction] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    bill_image_url: Optional[str] = None

    @field_validator("bill_image_url", mode="before")
    @classmethod
    def blank_bill_image_url(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def check_changes(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        # required on the stored record, so they can be replaced but not cleared
        for key in ("amount", "direction", "date"):
            if key in self.model_fields_set and getattr(self, key) is None:
                raise ValueError(f"{key} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
