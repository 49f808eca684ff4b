"""
Public procurement administration: domain models.

Entities:
- User (login account, one role)
- Supplier
- Tender -> Bid (cascade)
- Contract -> ServiceOrder / Amendment / Invoice (cascade)
- Notification (per user, cascade)
- AuditLog

Conventions:
- Identifiers are opaque UUID strings.
- Money is Numeric (Decimal), never float.
- Stored timestamps are naive UTC.
- Status columns hold the canonical enum values below; display labels are presentation-only.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .utils import new_id, utcnow


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _to_decimal(value) -> Decimal:
    """Convert Numeric/None to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value))


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _percent_to_fraction(percent_value: Decimal) -> Decimal:
    """10 (percent) => 0.10"""
    return (percent_value / Decimal("100")).quantize(Decimal("0.0000001"))


# ---------------------------------------------------------------------
# Canonical enumerations
# ---------------------------------------------------------------------
class TenderStatus(str, enum.Enum):
    UNDER_STUDY = "en cours d'étude"
    PUBLISHED = "publié"
    UNDER_EVALUATION = "en cours de jugement"
    AWARDED = "attribué"
    CANCELLED = "annulé"

    @property
    def label(self) -> str:
        return _TENDER_STATUS_LABELS[self]


_TENDER_STATUS_LABELS = {
    TenderStatus.UNDER_STUDY: "Under study",
    TenderStatus.PUBLISHED: "Published",
    TenderStatus.UNDER_EVALUATION: "Under evaluation",
    TenderStatus.AWARDED: "Awarded",
    TenderStatus.CANCELLED: "Cancelled",
}


class ProcurementCategory(str, enum.Enum):
    WORKS = "travaux"
    SUPPLIES = "fournitures"
    SERVICES = "services"


class SupplierStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BLACKLISTED = "blacklisted"


class BidStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    QUALIFIED = "qualified"
    DISQUALIFIED = "disqualified"
    AWARDED = "awarded"
    REJECTED = "rejected"


class ContractStatus(str, enum.Enum):
    SIGNED = "signed"
    IN_PROGRESS = "in_progress"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    TERMINATED = "terminated"


class ServiceOrderType(str, enum.Enum):
    START = "start"
    SUSPENSION = "suspension"
    RESUMPTION = "resumption"
    MODIFICATION = "modification"


class AmendmentType(str, enum.Enum):
    DELAY_EXTENSION = "delay_extension"
    PRICE_REVISION = "price_revision"
    SCOPE_CHANGE = "scope_change"


class InvoiceType(str, enum.Enum):
    ADVANCE = "advance"
    PROVISIONAL = "provisional"
    FINAL = "final"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class NotificationType(str, enum.Enum):
    DEADLINE_APPROACHING = "deadline_approaching"
    PAYMENT_DUE = "payment_due"
    CONTRACT_EXPIRING = "contract_expiring"
    NEW_TENDER = "new_tender"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _id_column():
    return db.Column(db.String(36), primary_key=True, default=new_id)


def _user_ref(name: str):
    return db.Column(
        name,
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"
    __api_exclude__ = ("password_hash",)

    id = _id_column()

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)

    # admin, marches_manager, ordonnateur, technical_service
    role = db.Column(db.String(40), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    notifications = db.relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = _id_column()

    name = db.Column(db.String(255), nullable=False)
    registration_number = db.Column(db.String(100), unique=True, nullable=True, index=True)  # RC / ICE
    tax_id = db.Column(db.String(100))

    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    phone = db.Column(db.String(50))
    email = db.Column(db.String(255))
    contact_person = db.Column(db.String(255))

    category = db.Column(db.String(40), index=True)
    status = db.Column(db.String(40), nullable=False, default=SupplierStatus.ACTIVE.value, index=True)
    performance_score = db.Column(db.Numeric(3, 2), default=Decimal("0"))

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Supplier {self.registration_number or '-'} - {self.name}>"


# ---------------------------------------------------------------------
# Tenders & bids
# ---------------------------------------------------------------------
class Tender(db.Model):
    __tablename__ = "tenders"

    id = _id_column()

    reference = db.Column(db.String(100), unique=True, nullable=False, index=True)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text)
    master_agency = db.Column(db.String(255), nullable=False)  # Maître d'ouvrage
    procedure_type = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(40), nullable=False, index=True)

    estimated_budget = db.Column(db.Numeric(15, 2))
    currency = db.Column(db.String(3), nullable=False, default="MAD")

    publication_date = db.Column(db.DateTime)
    submission_deadline = db.Column(db.DateTime, nullable=False, index=True)
    opening_date = db.Column(db.DateTime)

    technical_criteria = db.Column(db.JSON)
    financial_criteria = db.Column(db.JSON)

    status = db.Column(db.String(40), nullable=False, default=TenderStatus.UNDER_STUDY.value, index=True)

    document_url = db.Column(db.String(500))
    imported_from = db.Column(db.String(255))
    created_by = _user_ref("created_by")

    lots_number = db.Column(db.Integer)
    provisional_guarantee_amount = db.Column(db.Numeric(15, 2))
    opening_location = db.Column(db.String(255))
    execution_location = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    bids = db.relationship(
        "Bid",
        back_populates="tender",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Tender {self.reference}>"


class Bid(db.Model):
    __tablename__ = "bids"

    id = _id_column()

    tender_id = db.Column(
        db.String(36),
        db.ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supplier_id = db.Column(
        db.String(36),
        db.ForeignKey("suppliers.id"),
        nullable=False,
        index=True,
    )

    submission_date = db.Column(db.DateTime, default=utcnow, nullable=False)

    technical_score = db.Column(db.Numeric(5, 2))
    financial_score = db.Column(db.Numeric(5, 2))
    total_score = db.Column(db.Numeric(5, 2))

    proposed_amount = db.Column(db.Numeric(15, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="MAD")
    discount = db.Column(db.Numeric(5, 2), default=Decimal("0"))  # percent
    final_amount = db.Column(db.Numeric(15, 2), nullable=False)
    delivery_time = db.Column(db.Integer)  # days

    technical_documents = db.Column(db.JSON)
    financial_documents = db.Column(db.JSON)

    status = db.Column(db.String(40), nullable=False, default=BidStatus.SUBMITTED.value, index=True)
    disqualification_reason = db.Column(db.Text)
    rank = db.Column(db.Integer)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    tender = db.relationship("Tender", back_populates="bids")
    supplier = db.relationship("Supplier")

    def recalc_final_amount(self):
        """final = proposed - discount% (rounded to cents)."""
        proposed = _to_decimal(self.proposed_amount)
        discount = _percent_to_fraction(_to_decimal(self.discount))
        self.final_amount = _money(proposed * (Decimal("1") - discount))


# ---------------------------------------------------------------------
# Contracts & execution documents
# ---------------------------------------------------------------------
class Contract(db.Model):
    __tablename__ = "contracts"

    id = _id_column()

    contract_number = db.Column(db.String(100), unique=True, nullable=False, index=True)

    tender_id = db.Column(db.String(36), db.ForeignKey("tenders.id"), nullable=False, index=True)
    bid_id = db.Column(db.String(36), db.ForeignKey("bids.id"), nullable=False, index=True)
    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=False, index=True)

    title = db.Column(db.String(500), nullable=False)
    contract_amount = db.Column(db.Numeric(15, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="MAD")

    signature_date = db.Column(db.DateTime, nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    planned_end_date = db.Column(db.DateTime, nullable=False)
    actual_end_date = db.Column(db.DateTime)
    execution_delay = db.Column(db.Integer)  # days

    status = db.Column(db.String(40), nullable=False, default=ContractStatus.SIGNED.value, index=True)

    guarantee_amount = db.Column(db.Numeric(15, 2))
    guarantee_type = db.Column(db.String(100))  # cautionnement, retenue de garantie
    retention_percentage = db.Column(db.Numeric(5, 2), default=Decimal("10"))
    advance_payment_percentage = db.Column(db.Numeric(5, 2))
    penalty_rate_per_day = db.Column(db.Numeric(5, 4), default=Decimal("0.001"))  # 0.1 % per day
    accumulated_penalties = db.Column(db.Numeric(15, 2), default=Decimal("0"))

    pv_document_url = db.Column(db.String(500))
    contract_document_url = db.Column(db.String(500))
    created_by = _user_ref("created_by")

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    tender = db.relationship("Tender")
    bid = db.relationship("Bid")
    supplier = db.relationship("Supplier")

    service_orders = db.relationship(
        "ServiceOrder",
        back_populates="contract",
        cascade="all, delete-orphan",
    )
    amendments = db.relationship(
        "Amendment",
        back_populates="contract",
        cascade="all, delete-orphan",
    )
    invoices = db.relationship(
        "Invoice",
        back_populates="contract",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("tender_id", "bid_id", "supplier_id", name="uq_contract_award"),
    )

    # -----------------------------
    # Execution follow-up
    # -----------------------------
    @property
    def extension_days(self) -> int:
        return sum(int(a.delay_extension or 0) for a in self.amendments)

    @property
    def extended_end_date(self) -> datetime:
        return self.planned_end_date + timedelta(days=self.extension_days)

    def progress_percentage(self, now: Optional[datetime] = None) -> Decimal:
        """
        Elapsed share of the execution window, in percent, clamped to [0, 100].

        The window ends at actual_end_date when set, otherwise at planned_end_date.
        """
        now = now or utcnow()
        start = self.start_date
        end = self.actual_end_date or self.planned_end_date

        total = (end - start).total_seconds()
        if total <= 0:
            return Decimal("100.00") if now >= end else Decimal("0.00")

        elapsed = Decimal(str((now - start).total_seconds())) / Decimal(str(total))
        pct = min(max(elapsed * Decimal("100"), Decimal("0")), Decimal("100"))
        return _money(pct)

    def delay_days(self, now: Optional[datetime] = None) -> int:
        """Whole days beyond the extended end date (until actual end, or now)."""
        reference = self.actual_end_date or now or utcnow()
        overrun = reference - self.extended_end_date
        return max(overrun.days, 0)

    def computed_penalties(self, now: Optional[datetime] = None) -> Decimal:
        amount = _to_decimal(self.contract_amount)
        rate = _to_decimal(self.penalty_rate_per_day)
        return _money(amount * rate * Decimal(self.delay_days(now)))

    def execution_summary(self, now: Optional[datetime] = None) -> dict:
        """Read-time execution figures for the contract detail screen."""
        now = now or utcnow()

        adjustments = sum((_to_decimal(a.amount_adjustment) for a in self.amendments), Decimal("0"))
        invoiced = sum((_to_decimal(i.net_amount) for i in self.invoices), Decimal("0"))
        paid = sum(
            (_to_decimal(i.net_amount) for i in self.invoices if i.status == InvoiceStatus.PAID.value),
            Decimal("0"),
        )

        return {
            "contract_id": self.id,
            "progress": self.progress_percentage(now),
            "extended_end_date": self.extended_end_date,
            "delay_days": self.delay_days(now),
            "penalty_rate_per_day": _to_decimal(self.penalty_rate_per_day),
            "computed_penalties": self.computed_penalties(now),
            "accumulated_penalties": _money(_to_decimal(self.accumulated_penalties)),
            "amended_amount": _money(_to_decimal(self.contract_amount) + adjustments),
            "invoiced_net": _money(invoiced),
            "paid_net": _money(paid),
        }

    def __repr__(self):
        return f"<Contract {self.contract_number}>"


def _contract_fk():
    return db.Column(
        db.String(36),
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class ServiceOrder(db.Model):
    __tablename__ = "service_orders"

    id = _id_column()
    contract_id = _contract_fk()

    order_number = db.Column(db.String(100), unique=True, nullable=False, index=True)
    order_type = db.Column(db.String(40), nullable=False)
    order_date = db.Column(db.DateTime, nullable=False)
    effective_date = db.Column(db.DateTime, nullable=False)
    description = db.Column(db.Text, nullable=False)
    document_url = db.Column(db.String(500))
    issued_by = _user_ref("issued_by")

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    contract = db.relationship("Contract", back_populates="service_orders")


class Amendment(db.Model):
    __tablename__ = "amendments"

    id = _id_column()
    contract_id = _contract_fk()

    amendment_number = db.Column(db.String(100), unique=True, nullable=False, index=True)
    amendment_date = db.Column(db.DateTime, nullable=False)
    amendment_type = db.Column(db.String(40), nullable=False)
    description = db.Column(db.Text, nullable=False)
    amount_adjustment = db.Column(db.Numeric(15, 2), default=Decimal("0"))
    delay_extension = db.Column(db.Integer, default=0)  # days
    new_end_date = db.Column(db.DateTime)
    justification = db.Column(db.Text)
    document_url = db.Column(db.String(500))
    approved_by = _user_ref("approved_by")

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    contract = db.relationship("Contract", back_populates="amendments")


class Invoice(db.Model):
    """Décompte: a payment claim against a contract."""

    __tablename__ = "invoices"

    id = _id_column()
    contract_id = _contract_fk()

    invoice_number = db.Column(db.String(100), unique=True, nullable=False, index=True)
    invoice_type = db.Column(db.String(40), nullable=False)
    invoice_date = db.Column(db.DateTime, nullable=False)
    work_description = db.Column(db.Text)

    gross_amount = db.Column(db.Numeric(15, 2), nullable=False)
    retention_amount = db.Column(db.Numeric(15, 2), default=Decimal("0"))
    penalties_amount = db.Column(db.Numeric(15, 2), default=Decimal("0"))
    net_amount = db.Column(db.Numeric(15, 2), nullable=False)
    cumulative_amount = db.Column(db.Numeric(15, 2))
    progress_percentage = db.Column(db.Numeric(5, 2))

    status = db.Column(db.String(40), nullable=False, default=InvoiceStatus.DRAFT.value, index=True)
    submission_date = db.Column(db.DateTime)
    approval_date = db.Column(db.DateTime)
    payment_date = db.Column(db.DateTime)
    document_url = db.Column(db.String(500))
    approved_by = _user_ref("approved_by")

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    contract = db.relationship("Contract", back_populates="invoices")

    def recalc_net_amount(self):
        """net = gross - retention - penalties"""
        self.net_amount = _money(
            _to_decimal(self.gross_amount)
            - _to_decimal(self.retention_amount)
            - _to_decimal(self.penalties_amount)
        )


# ---------------------------------------------------------------------
# Notifications & audit
# ---------------------------------------------------------------------
class Notification(db.Model):
    __tablename__ = "notifications"

    id = _id_column()

    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    type = db.Column(db.String(40), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_entity_type = db.Column(db.String(40))  # tender, contract, invoice
    related_entity_id = db.Column(db.String(36))
    priority = db.Column(db.String(20), nullable=False, default=NotificationPriority.MEDIUM.value)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    scheduled_for = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    user = db.relationship("User", back_populates="notifications")


class AuditLog(db.Model):
    """Who did what to which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.String(36), nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
