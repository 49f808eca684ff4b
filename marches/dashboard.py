"""
Dashboard statistics (read-only, recomputed on every call).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from sqlalchemy import func

from . import storage
from .audit import recent_activity
from .extensions import db
from .models import Contract, ContractStatus, Supplier, Tender, TenderStatus
from .utils import json_value, utcnow

DEADLINE_WINDOW_DAYS = 7
DEADLINE_LIMIT = 5
ACTIVITY_LIMIT = 10


def _count(column, *criteria) -> int:
    q = db.session.query(func.count(column))
    if criteria:
        q = q.filter(*criteria)
    return int(q.scalar() or 0)


def upcoming_deadlines(
    now: datetime,
    window_days: int = DEADLINE_WINDOW_DAYS,
    limit: int = DEADLINE_LIMIT,
) -> list:
    """Published tenders closing within [now, now + window], nearest first."""
    horizon = now + timedelta(days=window_days)
    rows = (
        Tender.query
        .filter(
            Tender.status == TenderStatus.PUBLISHED.value,
            Tender.submission_deadline >= now,
            Tender.submission_deadline <= horizon,
        )
        .order_by(Tender.submission_deadline.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": t.id,
            "reference": t.reference,
            "title": t.title,
            "deadline": json_value(t.submission_deadline),
            "type": "tender",
        }
        for t in rows
    ]


def get_dashboard_stats(
    now: Optional[datetime] = None,
    *,
    window_days: int = DEADLINE_WINDOW_DAYS,
    deadline_limit: int = DEADLINE_LIMIT,
    activity_limit: int = ACTIVITY_LIMIT,
) -> Dict[str, Any]:
    now = now or utcnow()

    total_budget = storage.contracts.total_amount().quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return {
        "totalTenders": _count(Tender.id),
        "activeTenders": _count(Tender.id, Tender.status == TenderStatus.PUBLISHED.value),
        "totalContracts": _count(Contract.id),
        "activeContracts": _count(Contract.id, Contract.status == ContractStatus.IN_PROGRESS.value),
        "totalSuppliers": _count(Supplier.id),
        "totalBudget": str(total_budget),
        "upcomingDeadlines": upcoming_deadlines(now, window_days, deadline_limit),
        "recentActivity": recent_activity(activity_limit),
    }
