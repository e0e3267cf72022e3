from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from models.enums import (
    ListingCategory,
    ListingCondition,
    ListingSort,
    NotificationType,
    ReportStatus,
)


class SignUpIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    display_name: str = Field(min_length=1, max_length=120)
    username: Optional[str] = Field(default=None, max_length=30)
    university_name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("display_name", "username", "university_name", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class LoginIn(BaseModel):
    identifier: str = Field(
        min_length=1, description="Email address or username"
    )
    password: str = Field(min_length=1)


class UsernameCheckIn(BaseModel):
    username: Optional[str] = None


class ForgotPasswordIn(BaseModel):
    email: EmailStr


class ResetPasswordIn(BaseModel):
    password: str = Field(min_length=6, max_length=128)


class PublicUserOut(BaseModel):
    id: uuid.UUID
    display_name: Optional[str] = None
    username: Optional[str] = None
    university_domain: Optional[str] = None
    university_name: Optional[str] = None
    seller_rating: Optional[float] = None
    verified_seller: bool = False

    model_config = {"from_attributes": True}


class UserOut(PublicUserOut):
    email: str
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ProfileUpdateIn(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    username: Optional[str] = Field(default=None, min_length=1, max_length=30)
    university_name: Optional[str] = Field(default=None, max_length=255)


class ProfileCompleteIn(BaseModel):
    display_name: str = Field(min_length=1, max_length=120)
    username: Optional[str] = Field(default=None, max_length=30)
    university_name: Optional[str] = Field(default=None, max_length=255)


class PublicProfileOut(BaseModel):
    user: PublicUserOut
    listings: List["ListingOut"]


class ListingCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: ListingCategory = ListingCategory.OTHER
    condition: ListingCondition = ListingCondition.USED
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2, description="Dollars")
    image_urls: List[str] = Field(default_factory=list, max_length=10)
    brand: Optional[str] = Field(default=None, max_length=120)
    color: Optional[str] = Field(default=None, max_length=60)
    size: Optional[str] = Field(default=None, max_length=60)
    material: Optional[str] = Field(default=None, max_length=120)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("image_urls")
    @classmethod
    def validate_image_urls(cls, value: List[str]) -> List[str]:
        for url in value:
            if not (url.startswith("http://") or url.startswith("https://")):
                raise ValueError(f"Invalid image URL: {url}")
        return value


class ListingUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[ListingCategory] = None
    condition: Optional[ListingCondition] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    image_urls: Optional[List[str]] = Field(default=None, max_length=10)
    brand: Optional[str] = Field(default=None, max_length=120)
    color: Optional[str] = Field(default=None, max_length=60)
    size: Optional[str] = Field(default=None, max_length=60)
    material: Optional[str] = Field(default=None, max_length=120)


class ListingOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: Optional[str] = None
    category: str
    condition: ListingCondition
    price: int = Field(description="Cents")
    image_urls: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    material: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    seller: Optional[PublicUserOut] = Field(default=None, validation_alias="owner")

    model_config = {"from_attributes": True, "populate_by_name": True}


class ListingFilterIn(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    conditions: List[ListingCondition] = Field(default_factory=list)
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    max_price: Optional[Decimal] = Field(default=None, ge=0)
    brands: List[str] = Field(default_factory=list)
    verified_sellers_only: bool = False
    campus_only: bool = False
    sort: ListingSort = ListingSort.NEWEST
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=24, ge=1, le=100)


class ListingPage(BaseModel):
    items: List[ListingOut]
    total: int
    page: int
    per_page: int


class CartAddIn(BaseModel):
    listing_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=99)


class CartUpdateIn(BaseModel):
    quantity: int = Field(ge=1, le=99)


class CartRowOut(BaseModel):
    id: uuid.UUID
    listing_id: uuid.UUID
    title: str
    price: int
    qty: int
    seller_id: uuid.UUID
    seller_name: Optional[str] = None
    seller_campus: Optional[str] = None
    image_url: Optional[str] = None


class CartOut(BaseModel):
    items: List[CartRowOut]
    count: int
    subtotal: int


class ConversationCreateIn(BaseModel):
    listing_id: uuid.UUID
    other_user_id: uuid.UUID


class ConversationRefOut(BaseModel):
    conversation_id: uuid.UUID


class MessageSendIn(BaseModel):
    listing_id: uuid.UUID
    receiver_id: uuid.UUID
    body: str = Field(max_length=5000)
    client_id: Optional[str] = Field(default=None, max_length=64)


class MessageEditIn(BaseModel):
    body: str = Field(max_length=5000)


class MarkConversationReadIn(BaseModel):
    listing_id: uuid.UUID
    other_user_id: uuid.UUID


class MessageOut(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    listing_id: uuid.UUID
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    body: str
    read: bool = False
    seen_at: Optional[datetime] = None
    edited: bool = False
    edited_at: Optional[datetime] = None
    deleted: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SentMessageOut(BaseModel):
    message: MessageOut
    client_id: Optional[str] = None


class MarkReadOut(BaseModel):
    updated: int


class ConversationSummaryOut(BaseModel):
    id: uuid.UUID
    listing_id: uuid.UUID
    listing_title: Optional[str] = None
    listing_image: Optional[str] = None
    other_user: Optional[PublicUserOut] = None
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0


class UnreadCountOut(BaseModel):
    count: int


class NotificationOut(BaseModel):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    listing_id: Optional[uuid.UUID] = None
    read: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReportCreateIn(BaseModel):
    listing_id: uuid.UUID
    reason: str = Field(min_length=1, max_length=2000)
    description: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, value):
        return value.strip() if isinstance(value, str) else value


class ConversationReportIn(ReportCreateIn):
    other_user_id: uuid.UUID


class ReportListingOut(BaseModel):
    id: uuid.UUID
    title: str
    user_id: uuid.UUID

    model_config = {"from_attributes": True}


class ReportReporterOut(BaseModel):
    id: uuid.UUID
    email: str
    display_name: Optional[str] = None

    model_config = {"from_attributes": True}


class ReportOut(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    listing_id: uuid.UUID
    reason: str
    description: Optional[str] = None
    status: ReportStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    reporter: Optional[ReportReporterOut] = None
    listing: Optional[ReportListingOut] = None

    model_config = {"from_attributes": True}


class ReportStatusUpdateIn(BaseModel):
    status: str
    notes: Optional[str] = Field(default=None, max_length=2000)


class ContactIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)


PublicProfileOut.model_rebuild()
