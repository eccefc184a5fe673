from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


ClientStatus = Literal["Active", "Inactive", "Prospect"]
DealCurrency = Literal["BRL", "USD"]
DealStatus = Literal["Open", "Won", "Lost", "Abandoned"]
ActivityType = Literal["Call", "Email", "Meeting", "Note", "Task"]
ActivityStatus = Literal["Scheduled", "Completed", "Cancelled"]
RelatedEntityType = Literal["Deal", "Client", "Person"]

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class User(CamelModel):
    id: str
    email: EmailStr
    name: str | None = None
    created_at: datetime
    updated_at: datetime


class PersonCreate(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    job_title: str | None = None
    company: str | None = None
    client_id: str | None = None
    avatar: str | None = None
    notes: str | None = None
    tags: list[str] | None = None


class PersonUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    job_title: str | None = None
    company: str | None = None
    client_id: str | None = None
    avatar: str | None = None
    notes: str | None = None
    tags: list[str] | None = None


class Person(PersonCreate):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime
    created_by: str


class ClientAddress(CamelModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class ClientCreate(CamelModel):
    name: str = Field(min_length=1)
    company_type: str | None = None
    industry: str | None = None
    website: str | None = None
    address: ClientAddress | None = None
    phone: str | None = None
    email: EmailStr | None = None
    description: str | None = None
    status: ClientStatus = "Prospect"
    annual_revenue: Decimal | None = Field(default=None, ge=0)
    employee_count: int | None = Field(default=None, ge=0)
    tags: list[str] | None = None


class ClientUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    company_type: str | None = None
    industry: str | None = None
    website: str | None = None
    address: ClientAddress | None = None
    phone: str | None = None
    email: EmailStr | None = None
    description: str | None = None
    status: ClientStatus | None = None
    annual_revenue: Decimal | None = Field(default=None, ge=0)
    employee_count: int | None = Field(default=None, ge=0)
    tags: list[str] | None = None


class Client(ClientCreate):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime
    created_by: str


class DealNote(CamelModel):
    id: str
    content: str = Field(min_length=1)
    created_at: datetime
    created_by: str


class DealCreate(CamelModel):
    title: str = Field(min_length=1)
    value: Decimal = Field(ge=0)
    currency: DealCurrency
    pipeline: str
    stage: str = Field(min_length=1)
    owner_id: str
    expected_closing_date: date | None = None
    description: str | None = None
    client_id: str
    probability: int | None = Field(default=None, ge=0, le=100)
    actual_closing_date: date | None = None
    status: DealStatus = "Open"
    tags: list[str] | None = None
    notes: list[DealNote] | None = None


class DealUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1)
    value: Decimal | None = Field(default=None, ge=0)
    currency: DealCurrency | None = None
    pipeline: str | None = None
    stage: str | None = Field(default=None, min_length=1)
    owner_id: str | None = None
    expected_closing_date: date | None = None
    description: str | None = None
    client_id: str | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    actual_closing_date: date | None = None
    status: DealStatus | None = None
    tags: list[str] | None = None
    notes: list[DealNote] | None = None


class Deal(DealCreate):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime
    created_by: str


class RelatedEntity(CamelModel):
    entity_type: RelatedEntityType
    entity_id: str


class ActivityCreate(CamelModel):
    type: ActivityType
    subject: str = Field(min_length=1)
    description: str | None = None
    related_to: RelatedEntity
    scheduled_date: datetime | None = None
    completed_date: datetime | None = None
    status: ActivityStatus = "Scheduled"
    assigned_to: str | None = None


class ActivityUpdate(CamelModel):
    type: ActivityType | None = None
    subject: str | None = Field(default=None, min_length=1)
    description: str | None = None
    related_to: RelatedEntity | None = None
    scheduled_date: datetime | None = None
    completed_date: datetime | None = None
    status: ActivityStatus | None = None
    assigned_to: str | None = None


class Activity(ActivityCreate):
    id: str
    user_id: str
    created_at: datetime
    created_by: str
    updated_at: datetime | None = None


class PipelineStage(CamelModel):
    name: str = Field(min_length=1)
    order: int = Field(ge=0)
    color: str | None = None
    probability: int | None = Field(default=None, ge=0, le=100)


def _ensure_unique_stage_orders(stages: list[PipelineStage]) -> None:
    seen: set[int] = set()
    for stage in stages:
        if stage.order in seen:
            raise ValueError(f"duplicate stage order {stage.order}")
        seen.add(stage.order)


class PipelineCreate(CamelModel):
    name: str = Field(min_length=1)
    stages: list[PipelineStage] = Field(default_factory=list)
    is_default: bool = False

    @model_validator(mode="after")
    def validate_stage_orders(self) -> PipelineCreate:
        _ensure_unique_stage_orders(self.stages)
        return self

    def stage_names(self) -> list[str]:
        return [stage.name for stage in sorted(self.stages, key=lambda stage: stage.order)]


class PipelineUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    stages: list[PipelineStage] | None = None
    is_default: bool | None = None

    @model_validator(mode="after")
    def validate_stage_orders(self) -> PipelineUpdate:
        if self.stages is not None:
            _ensure_unique_stage_orders(self.stages)
        return self


class Pipeline(PipelineCreate):
    id: str
    user_id: str
    created_at: datetime
    created_by: str
    updated_at: datetime | None = None


class TagCreate(CamelModel):
    name: str = Field(min_length=1)
    color: str | None = None


class TagUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    color: str | None = None


class Tag(TagCreate):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime | None = None


# NextAuth adapter records


class UserSession(CamelModel):
    session_token: str
    user_id: str
    expires: datetime


class UserAccount(CamelModel):
    id: str
    user_id: str
    type: str
    provider: str
    provider_account_id: str
    refresh_token: str | None = Field(default=None, alias="refresh_token")
    access_token: str | None = Field(default=None, alias="access_token")
    expires_at: int | None = Field(default=None, alias="expires_at")
    token_type: str | None = Field(default=None, alias="token_type")
    scope: str | None = None
    id_token: str | None = Field(default=None, alias="id_token")
    session_state: str | None = Field(default=None, alias="session_state")


class VerificationToken(CamelModel):
    identifier: str
    token: str
    expires: datetime


# Response envelopes


class ApiResponse(BaseModel, Generic[T]):
    data: T | None = None
    error: str | None = None
    message: str | None = None


class Pagination(CamelModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    total_pages: int = Field(ge=0)


class PaginatedResponse(BaseModel, Generic[T]):
    data: list[T]
    pagination: Pagination

    @classmethod
    def from_items(cls, items: list[T], *, page: int, limit: int) -> PaginatedResponse[T]:
        start = (page - 1) * limit
        total = len(items)
        return cls(
            data=items[start : start + limit],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=-(-total // limit)),
        )
