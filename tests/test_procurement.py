import pytest
from sqlalchemy.exc import OperationalError

from marches.blueprints import crud
from marches.security import Role

from .factories import bid_payload, supplier_payload, tender_payload


def test_tender_round_trip(login_as, users):
    client = login_as(Role.MARCHES_MANAGER)
    payload = tender_payload(description="Lot unique", lotsNumber=1)

    created = client.post("/api/tenders", json=payload)
    assert created.status_code == 201
    body = created.get_json()

    assert body["reference"] == payload["reference"]
    assert body["estimatedBudget"] == "1500000.00"
    assert body["submissionDeadline"] == "2025-06-30T10:00:00"
    assert body["status"] == "publié"
    assert body["currency"] == "MAD"
    assert body["createdBy"] == users["marches_manager"]

    fetched = client.get(f"/api/tenders/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.get_json() == body


def test_partial_update_leaves_other_fields(login_as):
    client = login_as(Role.MARCHES_MANAGER)
    tender = client.post("/api/tenders", json=tender_payload()).get_json()

    resp = client.patch(f"/api/tenders/{tender['id']}", json={"title": "Titre révisé"})

    assert resp.status_code == 200
    updated = resp.get_json()
    assert updated["title"] == "Titre révisé"
    for key in ("reference", "masterAgency", "estimatedBudget", "submissionDeadline", "status", "createdAt"):
        assert updated[key] == tender[key]


def test_list_filters_tenders_by_status(login_as):
    client = login_as(Role.ADMIN)
    published = client.post("/api/tenders", json=tender_payload(status="publié")).get_json()
    client.post("/api/tenders", json=tender_payload(status="en cours d'étude"))
    client.post("/api/tenders", json=tender_payload(status="attribué"))

    resp = client.get("/api/tenders", query_string={"status": "publié"})

    assert resp.status_code == 200
    assert [t["id"] for t in resp.get_json()] == [published["id"]]
    assert len(client.get("/api/tenders").get_json()) == 3


def test_tender_rejects_unknown_status(login_as):
    client = login_as(Role.ADMIN)

    resp = client.post("/api/tenders", json=tender_payload(status="published"))

    assert resp.status_code == 400
    assert resp.get_json()["details"][0]["field"] == "status"


def test_tender_requires_mandatory_fields(login_as):
    client = login_as(Role.ADMIN)
    payload = tender_payload()
    del payload["submissionDeadline"]

    assert client.post("/api/tenders", json=payload).status_code == 400


def test_duplicate_reference_is_a_client_error(login_as):
    client = login_as(Role.ADMIN)
    client.post("/api/tenders", json=tender_payload(reference="AO-DUP"))

    resp = client.post("/api/tenders", json=tender_payload(reference="AO-DUP"))

    assert resp.status_code == 400
    # the session is usable again after the rollback
    assert len(client.get("/api/tenders").get_json()) == 1


def test_missing_entities_are_404(login_as):
    client = login_as(Role.ADMIN)

    assert client.get("/api/tenders/missing").status_code == 404
    assert client.patch("/api/suppliers/missing", json={"name": "x"}).status_code == 404
    resp = client.delete("/api/bids/missing")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Bid not found"}


def test_permission_is_checked_before_existence(login_as):
    client = login_as(Role.ORDONNATEUR)

    assert client.patch("/api/tenders/missing", json={"title": "x"}).status_code == 403
    assert client.delete("/api/tenders/missing").status_code == 403


@pytest.mark.parametrize(
    "method, path",
    [
        ("post", "/api/tenders"),
        ("post", "/api/suppliers"),
        ("post", "/api/bids"),
        ("post", "/api/contracts"),
        ("post", "/api/invoices"),
        ("patch", "/api/service-orders/any"),
        ("delete", "/api/amendments/any"),
    ],
)
def test_ordonnateur_cannot_write(login_as, method, path):
    client = login_as(Role.ORDONNATEUR)

    resp = getattr(client, method)(path, json={})

    assert resp.status_code == 403
    assert resp.get_json() == {"error": "Forbidden: Insufficient permissions"}


def test_ordonnateur_can_read(login_as):
    client = login_as(Role.ADMIN)
    client.post("/api/suppliers", json=supplier_payload())

    client = login_as(Role.ORDONNATEUR)
    assert len(client.get("/api/suppliers").get_json()) == 1


def test_technical_service_cannot_create_tenders(login_as):
    client = login_as(Role.TECHNICAL_SERVICE)

    assert client.post("/api/tenders", json=tender_payload()).status_code == 403


def test_bid_final_amount_is_computed(login_as, award):
    client = login_as(Role.ADMIN)

    bid = client.get(f"/api/bids/{award['bid']}").get_json()
    assert bid["finalAmount"] == "950000.00"

    updated = client.patch(f"/api/bids/{award['bid']}", json={"discount": "10", "rank": 1}).get_json()
    assert updated["finalAmount"] == "900000.00"
    assert updated["rank"] == 1


def test_bid_with_unknown_tender_is_rejected(login_as, award):
    client = login_as(Role.ADMIN)

    resp = client.post("/api/bids", json=bid_payload("no-such-tender", award["supplier"]))

    assert resp.status_code == 400
    assert resp.get_json()["details"][0]["field"] == "tenderId"


def test_bids_filtered_by_tender_then_supplier(login_as, award):
    client = login_as(Role.ADMIN)
    other_tender = client.post("/api/tenders", json=tender_payload()).get_json()
    other_bid = client.post("/api/bids", json=bid_payload(other_tender["id"], award["supplier"])).get_json()

    by_tender = client.get("/api/bids", query_string={"tenderId": other_tender["id"]}).get_json()
    assert [b["id"] for b in by_tender] == [other_bid["id"]]

    by_supplier = client.get("/api/bids", query_string={"supplierId": award["supplier"]}).get_json()
    assert {b["id"] for b in by_supplier} == {award["bid"], other_bid["id"]}

    both = client.get(
        "/api/bids",
        query_string={"tenderId": award["tender"], "supplierId": award["supplier"]},
    ).get_json()
    assert [b["id"] for b in both] == [award["bid"]]


def test_deleting_a_tender_removes_its_bids(login_as, award):
    client = login_as(Role.MARCHES_MANAGER)

    assert client.delete(f"/api/tenders/{award['tender']}").status_code == 204
    assert client.get(f"/api/bids/{award['bid']}").status_code == 404


def test_supplier_performance_score_only_on_update(login_as):
    client = login_as(Role.ADMIN)
    supplier = client.post("/api/suppliers", json=supplier_payload()).get_json()
    assert supplier["performanceScore"] == "0.00"

    resp = client.patch(f"/api/suppliers/{supplier['id']}", json={"performanceScore": "4.50"})

    assert resp.status_code == 200
    assert resp.get_json()["performanceScore"] == "4.50"


def test_date_shaped_text_survives_round_trip(login_as):
    client = login_as(Role.ADMIN)

    created = client.post("/api/tenders", json=tender_payload(reference="2025-06-01", title="2025-06-01"))
    assert created.status_code == 201
    body = created.get_json()
    assert body["reference"] == "2025-06-01"
    assert body["title"] == "2025-06-01"

    fetched = client.get(f"/api/tenders/{body['id']}").get_json()
    assert fetched["reference"] == "2025-06-01"
    assert fetched["title"] == "2025-06-01"


def test_supplier_with_bids_cannot_be_deleted(login_as, award):
    client = login_as(Role.ADMIN)

    assert client.delete(f"/api/suppliers/{award['supplier']}").status_code == 400

    assert client.get(f"/api/suppliers/{award['supplier']}").status_code == 200
    assert client.get(f"/api/bids/{award['bid']}").get_json()["supplierId"] == award["supplier"]


def test_failed_audit_keeps_nothing(login_as, monkeypatch):
    client = login_as(Role.ADMIN)

    def broken_log_action(*args, **kwargs):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    monkeypatch.setattr(crud, "log_action", broken_log_action)
    resp = client.post("/api/tenders", json=tender_payload())
    monkeypatch.undo()

    assert resp.status_code == 500
    assert client.get("/api/tenders").get_json() == []
