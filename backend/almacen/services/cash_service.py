# Overview: Service-layer operations for the cash register (caja); encapsulates business logic and database work.

"""
Cash Session Service

WHY: The daily caja reconciles what the drawer should hold against what
was counted at close. Totals are derived from two streams (sales and
manual cash movements) inside the session window.

DESIGN PRINCIPLES:
- At most one open session per business date (partial unique index plus
  a check inside the opening transaction)
- Stored total_* columns are a rollup; compute_session_totals() is the
  source of truth and reads always recompute first
- expected = opening + total_sales - total_expenses
- Closing is never blocked by a non-zero difference
- Closed sessions are immutable
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import AlreadyResolved, CashSessionError, CashSessionNotFound, ValidationError
from ..extensions import db
from ..models import CashSession, ManualCashMovement, Sale
from ..models.cash import MANUAL_EXPENSE, MANUAL_INCOME, SESSION_STATUS_CLOSED, SESSION_STATUS_OPEN
from ..models.sales import PAYMENT_CARD, PAYMENT_CASH, PAYMENT_METHODS, PAYMENT_TRANSFER
from almacen.time_utils import to_utc_z, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .session_service import SessionContext, require_user


MANUAL_KINDS = (MANUAL_INCOME, MANUAL_EXPENSE)


def _non_negative_cents(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer amount in cents")
    return value


# =============================================================================
# AGGREGATION
# =============================================================================

@dataclass(frozen=True)
class SessionTotals:
    total_sales_cents: int = 0
    total_cash_cents: int = 0
    total_card_cents: int = 0
    total_transfer_cents: int = 0
    total_expenses_cents: int = 0
    total_extra_income_cents: int = 0
    expected_amount_cents: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def summarize_cash_events(opening_amount_cents: int, sales, manual_movements) -> SessionTotals:
    """
    Reduce a session's event streams to its totals. Pure.

    sales: objects with payment_method and total_cents
    manual_movements: objects with kind (Ingreso/Egreso) and amount_cents

    Manual Ingresos are reported as extra income but do not enter the
    expected amount.
    """
    by_method = {PAYMENT_CASH: 0, PAYMENT_CARD: 0, PAYMENT_TRANSFER: 0}
    total_sales = 0
    for sale in sales:
        amount = int(sale.total_cents or 0)
        total_sales += amount
        if sale.payment_method in by_method:
            by_method[sale.payment_method] += amount

    expenses = 0
    extra_income = 0
    for movement in manual_movements:
        if movement.kind == MANUAL_EXPENSE:
            expenses += int(movement.amount_cents)
        elif movement.kind == MANUAL_INCOME:
            extra_income += int(movement.amount_cents)

    return SessionTotals(
        total_sales_cents=total_sales,
        total_cash_cents=by_method[PAYMENT_CASH],
        total_card_cents=by_method[PAYMENT_CARD],
        total_transfer_cents=by_method[PAYMENT_TRANSFER],
        total_expenses_cents=expenses,
        total_extra_income_cents=extra_income,
        expected_amount_cents=int(opening_amount_cents or 0) + total_sales - expenses,
    )


def _window(session: CashSession, until: datetime | None = None) -> tuple[datetime, datetime]:
    end = session.closed_at or until or utcnow()
    return session.opened_at, end


def _window_sales(session: CashSession, until: datetime | None = None) -> list[Sale]:
    start, end = _window(session, until)
    return (
        db.session.query(Sale)
        .filter(Sale.occurred_at >= start, Sale.occurred_at <= end)
        .order_by(Sale.occurred_at, Sale.id)
        .all()
    )


def _window_manual_movements(session: CashSession, until: datetime | None = None) -> list[ManualCashMovement]:
    start, end = _window(session, until)
    return (
        db.session.query(ManualCashMovement)
        .filter(ManualCashMovement.occurred_at >= start, ManualCashMovement.occurred_at <= end)
        .order_by(ManualCashMovement.occurred_at, ManualCashMovement.id)
        .all()
    )


def compute_session_totals(session: CashSession, *, until: datetime | None = None) -> SessionTotals:
    """Totals over [opened_at, closed_at or until or now]. Read-only."""
    return summarize_cash_events(
        session.opening_amount_cents,
        _window_sales(session, until),
        _window_manual_movements(session, until),
    )


def _apply_totals(session: CashSession, totals: SessionTotals) -> None:
    session.total_sales_cents = totals.total_sales_cents
    session.total_cash_cents = totals.total_cash_cents
    session.total_card_cents = totals.total_card_cents
    session.total_transfer_cents = totals.total_transfer_cents
    session.total_expenses_cents = totals.total_expenses_cents
    session.total_extra_income_cents = totals.total_extra_income_cents
    session.expected_amount_cents = totals.expected_amount_cents
    session.totals_refreshed_at = utcnow()


def refresh_session_totals(session_id: int) -> CashSession:
    """
    Recompute and persist the rollup of one session.

    Closed sessions keep the totals frozen at close and are returned as is.
    """
    def _op():
        begin_write()
        session = lock_for_update(db.session.query(CashSession).filter_by(id=session_id)).first()
        if session is None:
            raise CashSessionNotFound(f"Cash session {session_id} not found")
        if session.status != SESSION_STATUS_OPEN:
            db.session.rollback()
            return session

        _apply_totals(session, compute_session_totals(session))
        db.session.commit()
        return session

    return run_with_retry(_op)


def _find_open_session(business_date: date | None = None) -> CashSession | None:
    query = db.session.query(CashSession).filter(CashSession.status == SESSION_STATUS_OPEN)
    if business_date is not None:
        query = query.filter(CashSession.business_date == business_date)
    return query.order_by(CashSession.opened_at.desc(), CashSession.id.desc()).first()


def _current_open_session(business_date: date) -> CashSession | None:
    # A session left open on an earlier day still counts until it is closed
    return _find_open_session(business_date) or _find_open_session()


def refresh_open_session_totals() -> CashSession | None:
    """
    Change hook: called after every committed sale or manual movement.

    Every open session is refreshed, since a session left open from an
    earlier day still has a growing window. Returns the newest refreshed
    session, or None when the caja is closed.
    """
    session_ids = [
        row[0]
        for row in db.session.query(CashSession.id)
        .filter(CashSession.status == SESSION_STATUS_OPEN)
        .order_by(CashSession.opened_at.desc(), CashSession.id.desc())
        .all()
    ]
    refreshed = [refresh_session_totals(session_id) for session_id in session_ids]
    return refreshed[0] if refreshed else None


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

def open_session(
    ctx: SessionContext,
    opening_amount_cents: int,
    notes: str | None = None,
) -> CashSession:
    """
    Open the caja for the context's business date.

    Raises:
        CashSessionError: a session is already open for that business date
    """
    user = require_user(ctx)
    opening = _non_negative_cents(opening_amount_cents, "opening_amount_cents")

    def _op():
        begin_write()

        existing = _find_open_session(ctx.business_date)
        if existing is not None:
            raise CashSessionError(
                f"Cash session {existing.id} is already open",
                details={
                    "session_id": existing.id,
                    "business_date": existing.business_date.isoformat(),
                },
            )

        session = CashSession(
            business_date=ctx.business_date,
            status=SESSION_STATUS_OPEN,
            opening_amount_cents=opening,
            expected_amount_cents=opening,
            opened_at=utcnow(),
            opened_by_user_id=user.id,
            notes=notes,
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise CashSessionError(f"A cash session is already open for {ctx.business_date.isoformat()}")
        return session

    session = run_with_retry(_op)
    current_app.logger.info(
        "Cash session %s opened for %s by %s", session.id, session.business_date, user.username
    )
    return session


def get_session(session_id: int) -> CashSession:
    """Fetch a session; an open one is recomputed first."""
    session = db.session.get(CashSession, session_id)
    if session is None:
        raise CashSessionNotFound(f"Cash session {session_id} not found")
    if session.status == SESSION_STATUS_OPEN:
        session = refresh_session_totals(session.id)
    return session


def get_current_session(ctx: SessionContext | None = None) -> CashSession | None:
    """
    The open session with freshly recomputed totals, or None.

    With a context, the session for its business date wins over one left
    open from an earlier day.
    """
    session = _current_open_session(ctx.business_date) if ctx is not None else _find_open_session()
    if session is None:
        return None
    return refresh_session_totals(session.id)


def close_session(
    ctx: SessionContext,
    session_id: int,
    closing_amount_cents: int,
    notes: str | None = None,
) -> CashSession:
    """
    Close a session and record the counted cash.

    Totals are recomputed over the final window first; difference is
    closing - expected (negative = faltante). Never blocked by a
    non-zero difference.

    Raises:
        CashSessionNotFound: unknown session
        AlreadyResolved: session already closed, nothing changed
    """
    user = require_user(ctx)
    closing = _non_negative_cents(closing_amount_cents, "closing_amount_cents")

    def _op():
        begin_write()
        session = lock_for_update(db.session.query(CashSession).filter_by(id=session_id)).first()
        if session is None:
            raise CashSessionNotFound(f"Cash session {session_id} not found")
        if session.status != SESSION_STATUS_OPEN:
            current_app.logger.warning("Close requested for already closed cash session %s", session_id)
            raise AlreadyResolved(f"Cash session {session_id} is already closed")

        closed_at = utcnow()
        totals = compute_session_totals(session, until=closed_at)
        _apply_totals(session, totals)

        session.status = SESSION_STATUS_CLOSED
        session.closed_at = closed_at
        session.closing_amount_cents = closing
        session.difference_cents = closing - totals.expected_amount_cents
        session.closed_by_user_id = user.id
        if notes:
            session.notes = f"{session.notes}\n{notes}" if session.notes else notes

        db.session.commit()
        return session

    session = run_with_retry(_op)
    current_app.logger.info(
        "Cash session %s closed: expected=%s counted=%s difference=%s",
        session.id, session.expected_amount_cents, session.closing_amount_cents, session.difference_cents,
    )
    return session


def list_sessions(
    *,
    start: date | None = None,
    end: date | None = None,
    status: str | None = None,
) -> list[CashSession]:
    """Session history, newest business date first. start/end are inclusive."""
    q = db.session.query(CashSession)
    if start is not None:
        q = q.filter(CashSession.business_date >= start)
    if end is not None:
        q = q.filter(CashSession.business_date <= end)
    if status:
        q = q.filter(CashSession.status == status)
    return q.order_by(CashSession.business_date.desc(), CashSession.id.desc()).all()


# =============================================================================
# MANUAL MOVEMENTS
# =============================================================================

def record_manual_movement(
    ctx: SessionContext,
    kind: str,
    amount_cents: int,
    payment_method: str,
    description: str,
    category: str | None = None,
    receipt: str | None = None,
    *,
    session_id: int | None = None,
) -> ManualCashMovement:
    """
    Record a cash Ingreso or Egreso against the open session.

    Raises:
        CashSessionError: no open session, or session_id is not the open one
    """
    user = require_user(ctx)
    if kind not in MANUAL_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(MANUAL_KINDS)}")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {payment_method}")
    if not description or not str(description).strip():
        raise ValidationError("description is required")

    def _op():
        begin_write()
        session = _current_open_session(ctx.business_date)
        if session is None:
            raise CashSessionError("No cash session is open")
        if session_id is not None and session.id != session_id:
            raise CashSessionError(f"Cash session {session_id} is not open")

        movement = ManualCashMovement(
            cash_session_id=session.id,
            kind=kind,
            category=category,
            description=str(description).strip(),
            payment_method=payment_method,
            amount_cents=amount_cents,
            receipt=receipt,
            user_id=user.id,
            occurred_at=utcnow(),
        )
        db.session.add(movement)
        db.session.commit()
        return movement

    movement = run_with_retry(_op)

    try:
        refresh_open_session_totals()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to refresh cash session totals after manual movement")

    return movement


def list_session_transactions(session_id: int) -> list[dict]:
    """
    Sales and manual movements in the session window, newest first.

    Each entry: {source, kind, amount_cents, payment_method, description,
    document, occurred_at}.
    """
    session = db.session.get(CashSession, session_id)
    if session is None:
        raise CashSessionNotFound(f"Cash session {session_id} not found")

    entries = []
    for sale in _window_sales(session):
        entries.append({
            "source": "sale",
            "id": sale.id,
            "kind": "Venta",
            "amount_cents": sale.total_cents,
            "payment_method": sale.payment_method,
            "description": sale.client.name if sale.client else None,
            "document": sale.sale_number,
            "occurred_at": sale.occurred_at,
        })
    for movement in _window_manual_movements(session):
        entries.append({
            "source": "manual",
            "id": movement.id,
            "kind": movement.kind,
            "amount_cents": movement.amount_cents,
            "payment_method": movement.payment_method,
            "description": movement.description,
            "document": movement.receipt,
            "occurred_at": movement.occurred_at,
        })

    entries.sort(key=lambda e: (e["occurred_at"], e["id"]), reverse=True)
    for entry in entries:
        entry["occurred_at"] = to_utc_z(entry["occurred_at"])
    return entries
