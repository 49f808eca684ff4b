from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from marches import storage
from marches.errors import ValidationFailed
from marches.extensions import db


def tender_data(reference, **overrides):
    data = {
        "reference": reference,
        "title": "Fourniture de mobilier",
        "master_agency": "Région",
        "procedure_type": "consultation",
        "category": "fournitures",
        "submission_deadline": "2025-04-01T09:00:00Z",
    }
    data.update(overrides)
    return data


def test_create_coerces_date_strings(app):
    with app.app_context():
        tender = storage.tenders.create(tender_data("AO-S1"))

        assert tender.submission_deadline == datetime(2025, 4, 1, 9)
        assert tender.status == "en cours d'étude"
        assert len(tender.id) == 36


def test_text_columns_keep_date_shaped_strings(app):
    with app.app_context():
        tender = storage.tenders.create(tender_data("2025-06-01", title="2025-06-01", description="2025-06-01"))
        db.session.commit()
        db.session.expire_all()

        stored = storage.tenders.get(tender.id)
        assert stored.reference == "2025-06-01"
        assert stored.title == "2025-06-01"
        assert stored.description == "2025-06-01"
        assert storage.tenders.list()[0].reference == "2025-06-01"


def test_invalid_date_string_is_rejected(app):
    with app.app_context():
        with pytest.raises(ValidationFailed) as exc:
            storage.tenders.create(tender_data("AO-S1", submission_deadline="2025-02-30"))

        assert exc.value.details[0]["field"] == "submissionDeadline"


def test_writes_are_left_for_the_caller_to_commit(app):
    with app.app_context():
        tender = storage.tenders.create(tender_data("AO-S1"))
        assert storage.tenders.get(tender.id) is not None

        db.session.rollback()

        assert storage.tenders.list() == []


def test_list_is_newest_first(app):
    with app.app_context():
        first = storage.tenders.create(tender_data("AO-S1"))
        second = storage.tenders.create(tender_data("AO-S2"))
        first.created_at = second.created_at - timedelta(minutes=1)
        storage.tenders.update(first.id, {})

        assert [t.reference for t in storage.tenders.list()] == ["AO-S2", "AO-S1"]


def test_update_merges_and_stamps(app):
    with app.app_context():
        tender = storage.tenders.create(tender_data("AO-S1"))
        stamped = tender.updated_at

        updated = storage.tenders.update(tender.id, {"title": "Nouveau", "estimated_budget": Decimal("10.00")})

        assert updated.title == "Nouveau"
        assert updated.reference == "AO-S1"
        assert updated.updated_at >= stamped
        assert storage.tenders.update("missing", {"title": "x"}) is None


def test_delete_reports_whether_a_row_was_removed(app):
    with app.app_context():
        supplier = storage.suppliers.create({"name": "Fournisseur"})

        assert storage.suppliers.delete(supplier.id) is True
        assert storage.suppliers.delete(supplier.id) is False
        assert storage.suppliers.get(supplier.id) is None


def test_dangling_reference_names_the_field(app):
    with app.app_context():
        tender = storage.tenders.create(tender_data("AO-S1"))

        with pytest.raises(ValidationFailed) as exc:
            storage.bids.create(
                {"tender_id": tender.id, "supplier_id": "nope", "proposed_amount": Decimal("100.00")}
            )

        assert exc.value.details == [{"field": "supplierId", "message": "Unknown supplier 'nope'"}]


def test_users_store_hashes_passwords(app):
    with app.app_context():
        user = storage.users.create(
            {
                "username": "agent",
                "email": "agent@example.com",
                "full_name": "Agent",
                "role": "ordonnateur",
                "password": "plain-text",
            }
        )

        assert user.password_hash != "plain-text"
        assert storage.users.get_by_email("agent@example.com").check_password("plain-text")
        assert storage.users.get_by_email("AGENT@example.com") is None


def test_mark_read(app, users):
    with app.app_context():
        notification = storage.notifications.create(
            {"user_id": users["admin"], "type": "new_tender", "title": "Nouvel AO", "message": "AO-S1 publié"}
        )

        assert storage.notifications.mark_read(notification.id) is True
        assert storage.notifications.get(notification.id).is_read is True
        assert storage.notifications.mark_read("missing") is False
