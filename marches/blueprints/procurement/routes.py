"""
Procurement routes: tenders, suppliers and bids.

Reads are open to any authenticated user; writes are gated per resource kind.
"""

from flask import Blueprint

from ... import storage
from ...schemas import (
    BidCreate,
    BidUpdate,
    SupplierCreate,
    SupplierUpdate,
    TenderCreate,
    TenderUpdate,
)
from ...security import ResourceKind
from ..crud import register_resource

procurement_bp = Blueprint("procurement", __name__, url_prefix="/api")


register_resource(
    procurement_bp,
    path="/tenders",
    name="tenders",
    label="Tender",
    kind=ResourceKind.TENDER,
    store=storage.tenders,
    create_schema=TenderCreate,
    update_schema=TenderUpdate,
    filters={"status": "list_by_status"},
    owner_field="created_by",
)

register_resource(
    procurement_bp,
    path="/suppliers",
    name="suppliers",
    label="Supplier",
    kind=ResourceKind.SUPPLIER,
    store=storage.suppliers,
    create_schema=SupplierCreate,
    update_schema=SupplierUpdate,
)

# tenderId wins over supplierId when both are given
register_resource(
    procurement_bp,
    path="/bids",
    name="bids",
    label="Bid",
    kind=ResourceKind.BID,
    store=storage.bids,
    create_schema=BidCreate,
    update_schema=BidUpdate,
    filters={"tenderId": "list_by_tender", "supplierId": "list_by_supplier"},
)
