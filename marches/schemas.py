"""
Request schemas (pydantic v2).

- JSON uses camelCase keys; models use snake_case (alias generator).
- Money is Decimal with 2 decimals; rates/percents have their own bounds.
- Date fields accept "YYYY-MM-DD" or full ISO-8601 and are stored as naive UTC.
- Every *Create schema has a partial *Update counterpart (all fields optional);
  routes dump updates with exclude_unset so omitted fields stay untouched.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Optional, Type

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, create_model
from pydantic.alias_generators import to_camel

from .models import (
    AmendmentType,
    BidStatus,
    ContractStatus,
    InvoiceStatus,
    InvoiceType,
    NotificationPriority,
    NotificationType,
    ProcurementCategory,
    ServiceOrderType,
    SupplierStatus,
    TenderStatus,
)
from .security import Role
from .utils import as_naive_utc

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


Money = Annotated[Decimal, Field(max_digits=15, decimal_places=2)]
PositiveMoney = Annotated[Decimal, Field(ge=0, max_digits=15, decimal_places=2)]
Percent = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]
Score = Annotated[Decimal, Field(ge=0, max_digits=5, decimal_places=2)]
DailyRate = Annotated[Decimal, Field(ge=0, le=1, max_digits=5, decimal_places=4)]
Days = Annotated[int, Field(ge=0)]
UtcDateTime = Annotated[datetime, AfterValidator(as_naive_utc)]
Text = Annotated[str, Field(min_length=1)]
OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
Email = Annotated[str, Field(pattern=EMAIL_PATTERN)]
Currency = Annotated[str, Field(min_length=3, max_length=3)]


class ApiSchema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        str_strip_whitespace=True,
    )


def partial(schema: Type[ApiSchema], **extra_fields: Any) -> Type[ApiSchema]:
    """
    Derive an update schema: same fields and constraints, all optional, default None.

    extra_fields are create_model() field definitions for fields only editable after creation.
    """
    fields: dict = {}
    for name, info in schema.model_fields.items():
        annotation = info.annotation
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        fields[name] = (Optional[annotation], None)
    fields.update(extra_fields)
    return create_model(schema.__name__.replace("Create", "Update"), __base__=ApiSchema, **fields)


# ---------------------------------------------------------------------
# Auth & users
# ---------------------------------------------------------------------
class LoginRequest(ApiSchema):
    email: Email
    password: Annotated[str, Field(min_length=1)]

    # passwords are compared verbatim
    model_config = ConfigDict(str_strip_whitespace=False)


class UserCreate(ApiSchema):
    username: Text
    email: Email
    password: Annotated[str, Field(min_length=1)]
    full_name: Text
    role: Role


UserUpdate = partial(UserCreate)


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
class SupplierCreate(ApiSchema):
    name: Text
    registration_number: OptionalText = None
    tax_id: OptionalText = None
    address: OptionalText = None
    city: OptionalText = None
    phone: OptionalText = None
    email: OptionalText = None
    contact_person: OptionalText = None
    category: Optional[ProcurementCategory] = None
    status: SupplierStatus = SupplierStatus.ACTIVE


SupplierUpdate = partial(
    SupplierCreate,
    performance_score=(Optional[Annotated[Decimal, Field(ge=0, max_digits=3, decimal_places=2)]], None),
)


# ---------------------------------------------------------------------
# Tenders & bids
# ---------------------------------------------------------------------
class TenderCreate(ApiSchema):
    reference: Text
    title: Text
    description: OptionalText = None
    master_agency: Text
    procedure_type: Text
    category: ProcurementCategory
    estimated_budget: Optional[PositiveMoney] = None
    currency: Currency = "MAD"
    publication_date: Optional[UtcDateTime] = None
    submission_deadline: UtcDateTime
    opening_date: Optional[UtcDateTime] = None
    technical_criteria: Optional[Any] = None
    financial_criteria: Optional[Any] = None
    status: TenderStatus = TenderStatus.UNDER_STUDY
    document_url: OptionalText = None
    imported_from: OptionalText = None
    lots_number: Optional[Days] = None
    provisional_guarantee_amount: Optional[PositiveMoney] = None
    opening_location: OptionalText = None
    execution_location: OptionalText = None


TenderUpdate = partial(TenderCreate)


class BidCreate(ApiSchema):
    tender_id: Text
    supplier_id: Text
    technical_score: Optional[Score] = None
    financial_score: Optional[Score] = None
    total_score: Optional[Score] = None
    proposed_amount: PositiveMoney
    currency: Currency = "MAD"
    discount: Percent = Decimal("0")
    final_amount: Optional[PositiveMoney] = None
    delivery_time: Optional[Days] = None
    technical_documents: Optional[Any] = None
    financial_documents: Optional[Any] = None
    status: BidStatus = BidStatus.SUBMITTED
    disqualification_reason: OptionalText = None
    notes: OptionalText = None


BidUpdate = partial(BidCreate, rank=(Optional[Annotated[int, Field(ge=1)]], None))


# ---------------------------------------------------------------------
# Contracts & execution documents
# ---------------------------------------------------------------------
class ContractCreate(ApiSchema):
    contract_number: Text
    tender_id: Text
    bid_id: Text
    supplier_id: Text
    title: Text
    contract_amount: PositiveMoney
    currency: Currency = "MAD"
    signature_date: UtcDateTime
    start_date: UtcDateTime
    planned_end_date: UtcDateTime
    actual_end_date: Optional[UtcDateTime] = None
    execution_delay: Optional[Days] = None
    status: ContractStatus = ContractStatus.SIGNED
    guarantee_amount: Optional[PositiveMoney] = None
    guarantee_type: OptionalText = None
    retention_percentage: Percent = Decimal("10")
    advance_payment_percentage: Optional[Percent] = None
    penalty_rate_per_day: DailyRate = Decimal("0.001")
    pv_document_url: OptionalText = None
    contract_document_url: OptionalText = None


ContractUpdate = partial(ContractCreate, accumulated_penalties=(Optional[PositiveMoney], None))


class ServiceOrderCreate(ApiSchema):
    contract_id: Text
    order_number: Text
    order_type: ServiceOrderType
    order_date: UtcDateTime
    effective_date: UtcDateTime
    description: Text
    document_url: OptionalText = None


ServiceOrderUpdate = partial(ServiceOrderCreate)


class AmendmentCreate(ApiSchema):
    contract_id: Text
    amendment_number: Text
    amendment_date: UtcDateTime
    amendment_type: AmendmentType
    description: Text
    amount_adjustment: Money = Decimal("0")
    delay_extension: Days = 0
    new_end_date: Optional[UtcDateTime] = None
    justification: OptionalText = None
    document_url: OptionalText = None


AmendmentUpdate = partial(AmendmentCreate)


class InvoiceCreate(ApiSchema):
    contract_id: Text
    invoice_number: Text
    invoice_type: InvoiceType
    invoice_date: UtcDateTime
    work_description: OptionalText = None
    gross_amount: PositiveMoney
    retention_amount: PositiveMoney = Decimal("0")
    penalties_amount: PositiveMoney = Decimal("0")
    net_amount: Optional[Money] = None
    cumulative_amount: Optional[PositiveMoney] = None
    progress_percentage: Optional[Percent] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    submission_date: Optional[UtcDateTime] = None
    approval_date: Optional[UtcDateTime] = None
    payment_date: Optional[UtcDateTime] = None
    document_url: OptionalText = None


InvoiceUpdate = partial(InvoiceCreate)


# ---------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------
class NotificationCreate(ApiSchema):
    user_id: OptionalText = None
    type: NotificationType
    title: Text
    message: Text
    related_entity_type: OptionalText = None
    related_entity_id: OptionalText = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
    is_read: bool = False
    email_sent: bool = False
    scheduled_for: Optional[UtcDateTime] = None
