# Overview: Best-effort tracking of which users are clients of which company.

# backend/stockpost/services/client_tracking_service.py

from __future__ import annotations

import logging
from decimal import Decimal

from ..models import CompanyClient
from ..validation import ValidationError, to_money
from stockpost.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)

INTERACTION_SALE = "sale"
INTERACTION_APPOINTMENT = "appointment"
INTERACTION_TYPES = (INTERACTION_SALE, INTERACTION_APPOINTMENT)


def record_interaction(
    company_id: str,
    user_id: str,
    interaction_type: str = INTERACTION_SALE,
    amount=0,
    *,
    session=None,
) -> CompanyClient:
    """
    Upsert the (company, user) client row and bump its counters.

    Callers run this after their own transaction has committed; a failure
    here must never undo the event being recorded.
    """
    if interaction_type not in INTERACTION_TYPES:
        raise ValidationError(f"interaction_type must be one of: {', '.join(INTERACTION_TYPES)}")
    spent = to_money(amount or 0)

    def _op(s):
        today = utcnow().date()
        client = lock_for_update(
            s.query(CompanyClient).filter_by(company_id=company_id, user_id=user_id)
        ).first()
        if client is None:
            client = CompanyClient(
                company_id=company_id,
                user_id=user_id,
                first_interaction_date=today,
                last_interaction_date=today,
                total_appointments=0,
                total_sales=0,
                total_spent=Decimal("0.00"),
            )
            s.add(client)
        else:
            client.last_interaction_date = today

        if interaction_type == INTERACTION_SALE:
            client.total_sales = (client.total_sales or 0) + 1
            client.total_spent = to_money((client.total_spent or 0) + spent)
        else:
            client.total_appointments = (client.total_appointments or 0) + 1

        s.flush()
        logger.debug("Tracked %s for user %s at company %s", interaction_type, user_id, company_id)
        return client

    return run_in_transaction(_op, operation="tracking company client", session=session)
