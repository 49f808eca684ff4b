"""
Contract execution routes: contracts, service orders, amendments and invoices.

Plus a read-only execution summary per contract (progress, delay, penalties, invoicing).
"""

from flask import Blueprint, jsonify
from pydantic.alias_generators import to_camel

from ... import storage
from ...errors import ResourceNotFound
from ...schemas import (
    AmendmentCreate,
    AmendmentUpdate,
    ContractCreate,
    ContractUpdate,
    InvoiceCreate,
    InvoiceUpdate,
    ServiceOrderCreate,
    ServiceOrderUpdate,
)
from ...security import ResourceKind
from ...utils import json_value
from ..crud import register_resource

execution_bp = Blueprint("execution", __name__, url_prefix="/api")


register_resource(
    execution_bp,
    path="/contracts",
    name="contracts",
    label="Contract",
    kind=ResourceKind.CONTRACT,
    store=storage.contracts,
    create_schema=ContractCreate,
    update_schema=ContractUpdate,
    filters={"status": "list_by_status"},
    owner_field="created_by",
)

register_resource(
    execution_bp,
    path="/service-orders",
    name="service_orders",
    label="Service order",
    kind=ResourceKind.SERVICE_ORDER,
    store=storage.service_orders,
    create_schema=ServiceOrderCreate,
    update_schema=ServiceOrderUpdate,
    filters={"contractId": "list_by_contract"},
    owner_field="issued_by",
)

register_resource(
    execution_bp,
    path="/amendments",
    name="amendments",
    label="Amendment",
    kind=ResourceKind.AMENDMENT,
    store=storage.amendments,
    create_schema=AmendmentCreate,
    update_schema=AmendmentUpdate,
    filters={"contractId": "list_by_contract"},
)

register_resource(
    execution_bp,
    path="/invoices",
    name="invoices",
    label="Invoice",
    kind=ResourceKind.INVOICE,
    store=storage.invoices,
    create_schema=InvoiceCreate,
    update_schema=InvoiceUpdate,
    filters={"contractId": "list_by_contract"},
)


@execution_bp.route("/contracts/<entity_id>/execution", methods=["GET"])
def contract_execution(entity_id: str):
    contract = storage.contracts.get(entity_id)
    if contract is None:
        raise ResourceNotFound.for_entity("Contract")
    summary = contract.execution_summary()
    return jsonify({to_camel(key): json_value(value) for key, value in summary.items()})
