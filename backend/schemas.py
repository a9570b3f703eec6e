import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class UserBase(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None

class UserCreate(UserBase):
    password: str

class User(UserBase):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)

class Token(BaseModel):
    access_token: str
    token_type: str


class GroupBase(BaseModel):
    name: str
    description: str = ""

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Group name cannot be empty')
        return v.strip()

class GroupCreate(GroupBase):
    pass

class Group(GroupBase):
    id: int
    created_by_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class GroupMemberAdd(BaseModel):
    email: str

class GroupMember(BaseModel):
    id: int
    user_id: int
    full_name: str
    email: str
    role: str
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)

class GroupWithMembers(Group):
    members: list[GroupMember]


class ExpenseCreate(BaseModel):
    group_id: int
    description: str = ""
    amount: float
    paid_by: int
    participants: list[int]

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if not math.isfinite(v) or v <= 0:
            raise ValueError('Amount must be a positive number')
        return v

    @field_validator('participants')
    @classmethod
    def validate_participants(cls, v):
        if not v:
            raise ValueError('An expense needs at least one participant')
        # Participants are a set; keep first-seen order
        return list(dict.fromkeys(v))

class UserSummary(BaseModel):
    id: int
    name: str

class Expense(BaseModel):
    id: int
    group_id: int
    description: str
    amount: float
    paid_by: UserSummary
    participants: list[UserSummary]
    created_by_id: int
    date: datetime


# Ledger output keeps the camelCase field names the web client reads
class MemberBalance(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: int
    name: str
    balance: float
    total_paid: float
    total_share: float

class Settlement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_user_id: int = Field(alias="from")
    from_name: str = Field(alias="fromName")
    to_user_id: int = Field(alias="to")
    to_name: str = Field(alias="toName")
    amount: float

class GroupLedger(BaseModel):
    balances: list[MemberBalance]
    settlements: list[Settlement]


class MessageResponse(BaseModel):
    message: str
