from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid


class Plan(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ResourceKind(str, Enum):
    PROPERTY = "property"
    TENANT = "tenant"


class PromptVariant(str, Enum):
    TRIAL = "trial"
    GRACE = "grace"
    EXPIRED = "expired"
    STANDARD = "standard"


def gen_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(BaseModel):
    # plan and status stay plain strings: other flows write them directly and
    # unknown values must be tolerated, not rejected.
    owner_id: str
    plan: Optional[str] = Plan.FREE.value
    status: Optional[str] = None
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    grace_period_ends_at: Optional[datetime] = None
    external_transaction_id: Optional[str] = None


class EffectiveStatus(BaseModel):
    active: bool
    trial: bool = False
    grace_period: bool = False
    cancelled_active_until_expiry: bool = False
    reason: str


class Property(BaseModel):
    id: str = Field(default_factory=gen_id)
    owner_id: str
    name: str
    address: str
    created_at: datetime = Field(default_factory=utcnow)
    archived_at: Optional[datetime] = None


class Tenant(BaseModel):
    id: str = Field(default_factory=gen_id)
    owner_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class TenantDocument(BaseModel):
    id: str = Field(default_factory=gen_id)
    owner_id: str
    tenant_id: str
    file_name: str
    created_at: datetime = Field(default_factory=utcnow)


class FinancialTransaction(BaseModel):
    id: str = Field(default_factory=gen_id)
    owner_id: str
    property_id: Optional[str] = None
    amount: float
    description: str
    created_at: datetime = Field(default_factory=utcnow)


class PropertyCreate(BaseModel):
    name: str
    address: str


class TenantCreate(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class TenantDocumentCreate(BaseModel):
    file_name: str


class FinancialTransactionCreate(BaseModel):
    property_id: Optional[str] = None
    amount: float
    description: str


class PlanLimits(BaseModel):
    plan: Plan
    max_properties: Optional[int] = None  # None means unlimited
    max_tenants: Optional[int] = None
    max_documents: Optional[int] = None
    allows_financial_transactions: bool


class UpgradePrompt(BaseModel):
    variant: PromptVariant
    current_plan: Plan
    required_plan: Plan
    resource_kind: ResourceKind
    count: int
    message: str


class TokenData(BaseModel):
    user_id: str
    email: Optional[str] = None
