"""
marches/storage.py

Entity store: typed CRUD per entity kind over the SQLAlchemy models.

Rules:
- Input reaching the store is already validated (schemas.py); strings given for DateTime
  columns are still parsed here so raw dicts (seeds, CLI) behave the same. Text columns are
  never reinterpreted.
- Lists are newest first (created_at DESC).
- References to parent rows are checked before writing; a dangling reference is a
  ValidationFailed naming the field.
- Writes are flushed, never committed: the caller commits once, together with its audit entry.
  Cascades follow the model relationships and the database foreign keys.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar

from pydantic.alias_generators import to_camel

from .errors import ValidationFailed
from .extensions import db
from .models import (
    Amendment,
    Bid,
    Contract,
    Invoice,
    Notification,
    ServiceOrder,
    Supplier,
    Tender,
    User,
)
from .utils import coerce_dates

ModelT = TypeVar("ModelT", bound=db.Model)


class EntityStore(Generic[ModelT]):
    """Generic CRUD repository for one model."""

    # {column: parent model} checked on create/update
    references: Mapping[str, Type[Any]] = {}

    def __init__(self, model: Type[ModelT]):
        self.model = model

    # -----------------------------
    # Reads
    # -----------------------------
    def get(self, entity_id: str) -> Optional[ModelT]:
        return db.session.get(self.model, entity_id)

    def list(self, **filters: Any) -> List[ModelT]:
        q = self.model.query
        if filters:
            q = q.filter_by(**filters)
        return q.order_by(self.model.created_at.desc()).all()

    # -----------------------------
    # Writes
    # -----------------------------
    def create(self, data: Dict[str, Any]) -> ModelT:
        values = self._coerce(data)
        self._check_references(values)

        instance = self.model(**values)
        self.before_save(instance)

        db.session.add(instance)
        db.session.flush()
        return instance

    def update(self, entity_id: str, data: Dict[str, Any]) -> Optional[ModelT]:
        instance = self.get(entity_id)
        if instance is None:
            return None

        values = self._coerce(data)
        self._check_references(values)

        for key, value in values.items():
            setattr(instance, key, value)
        self.before_save(instance, changed=set(values))

        db.session.flush()
        return instance

    def delete(self, entity_id: str) -> bool:
        instance = self.get(entity_id)
        if instance is None:
            return False
        db.session.delete(instance)
        db.session.flush()
        return True

    # -----------------------------
    # Hooks
    # -----------------------------
    def before_save(self, instance: ModelT, changed: Optional[set] = None) -> None:
        """Derived-field hook (changed is None on create)."""

    def _coerce(self, data: Dict[str, Any]) -> Dict[str, Any]:
        date_fields = {
            column.key for column in self.model.__table__.columns if isinstance(column.type, db.DateTime)
        }
        values = coerce_dates(data, date_fields)
        for key in date_fields & values.keys():
            if isinstance(values[key], str):
                raise ValidationFailed.for_field(to_camel(key), f"Invalid date '{values[key]}'")
        return values

    def _check_references(self, values: Dict[str, Any]) -> None:
        for column, parent in self.references.items():
            ref = values.get(column)
            if ref is None:
                continue
            if db.session.get(parent, ref) is None:
                raise ValidationFailed.for_field(to_camel(column), f"Unknown {parent.__name__.lower()} '{ref}'")


# ---------------------------------------------------------------------
# Per-entity stores
# ---------------------------------------------------------------------
class UserStore(EntityStore[User]):
    def __init__(self):
        super().__init__(User)

    def get_by_email(self, email: str) -> Optional[User]:
        return User.query.filter_by(email=email).first()

    def get_by_username(self, username: str) -> Optional[User]:
        return User.query.filter_by(username=username).first()

    def create(self, data: Dict[str, Any]) -> User:
        values = dict(data)
        password = values.pop("password")
        user = User(**values)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()
        return user

    def update(self, entity_id: str, data: Dict[str, Any]) -> Optional[User]:
        values = dict(data)
        password = values.pop("password", None)
        user = super().update(entity_id, values) if values else self.get(entity_id)
        if user is not None and password:
            user.set_password(password)
            db.session.flush()
        return user


class SupplierStore(EntityStore[Supplier]):
    def __init__(self):
        super().__init__(Supplier)


class TenderStore(EntityStore[Tender]):
    def __init__(self):
        super().__init__(Tender)

    def list_by_status(self, status: str) -> List[Tender]:
        return self.list(status=status)


class BidStore(EntityStore[Bid]):
    references = {"tender_id": Tender, "supplier_id": Supplier}

    def __init__(self):
        super().__init__(Bid)

    def list_by_tender(self, tender_id: str) -> List[Bid]:
        return self.list(tender_id=tender_id)

    def list_by_supplier(self, supplier_id: str) -> List[Bid]:
        return self.list(supplier_id=supplier_id)

    def before_save(self, instance: Bid, changed: Optional[set] = None) -> None:
        if changed is None:
            if instance.final_amount is None:
                instance.recalc_final_amount()
        elif {"proposed_amount", "discount"} & changed and "final_amount" not in changed:
            instance.recalc_final_amount()


class ContractStore(EntityStore[Contract]):
    references = {"tender_id": Tender, "bid_id": Bid, "supplier_id": Supplier}

    def __init__(self):
        super().__init__(Contract)

    def list_by_status(self, status: str) -> List[Contract]:
        return self.list(status=status)

    def total_amount(self) -> Decimal:
        """Exact Decimal sum of all contract amounts."""
        amounts = db.session.query(Contract.contract_amount).all()
        return sum((Decimal(str(amount)) for (amount,) in amounts if amount is not None), Decimal("0"))


class _ContractChildStore(EntityStore[ModelT]):
    references = {"contract_id": Contract}

    def list_by_contract(self, contract_id: str) -> List[ModelT]:
        return self.list(contract_id=contract_id)


class ServiceOrderStore(_ContractChildStore[ServiceOrder]):
    def __init__(self):
        super().__init__(ServiceOrder)


class AmendmentStore(_ContractChildStore[Amendment]):
    def __init__(self):
        super().__init__(Amendment)


class InvoiceStore(_ContractChildStore[Invoice]):
    def __init__(self):
        super().__init__(Invoice)

    def before_save(self, instance: Invoice, changed: Optional[set] = None) -> None:
        amounts = {"gross_amount", "retention_amount", "penalties_amount"}
        if changed is None:
            if instance.net_amount is None:
                instance.recalc_net_amount()
        elif amounts & changed and "net_amount" not in changed:
            instance.recalc_net_amount()


class NotificationStore(EntityStore[Notification]):
    references = {"user_id": User}

    def __init__(self):
        super().__init__(Notification)

    def list_for_user(self, user_id: str) -> List[Notification]:
        return self.list(user_id=user_id)

    def mark_read(self, notification_id: str) -> bool:
        notification = self.get(notification_id)
        if notification is None:
            return False
        notification.is_read = True
        db.session.flush()
        return True


users = UserStore()
suppliers = SupplierStore()
tenders = TenderStore()
bids = BidStore()
contracts = ContractStore()
service_orders = ServiceOrderStore()
amendments = AmendmentStore()
invoices = InvoiceStore()
notifications = NotificationStore()
