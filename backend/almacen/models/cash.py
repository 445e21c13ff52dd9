from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from almacen.time_utils import to_utc_z


SESSION_STATUS_OPEN = "Abierta"
SESSION_STATUS_CLOSED = "Cerrada"

MANUAL_INCOME = "Ingreso"
MANUAL_EXPENSE = "Egreso"


class CashSession(db.Model):
    """
    Daily cash-register session (sesion de caja).

    LIFECYCLE:
    - Abierta: totals are a rollup recomputed from sales and manual movements
    - Cerrada: closing count and difference persisted; never reopened

    At most one Abierta session per business_date (partial unique index).
    The total_* columns are a cache; cash_service.compute_session_totals()
    is the source of truth.
    """
    __tablename__ = "sesiones_caja"
    __table_args__ = (
        db.Index(
            "uq_sesiones_caja_open_per_day",
            "business_date",
            unique=True,
            sqlite_where=db.text("status = 'Abierta'"),
            postgresql_where=db.text("status = 'Abierta'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_OPEN, index=True)

    opening_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_amount_cents = db.Column(db.Integer, nullable=True)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    total_card_cents = db.Column(db.Integer, nullable=False, default=0)
    total_transfer_cents = db.Column(db.Integer, nullable=False, default=0)
    total_expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    total_extra_income_cents = db.Column(db.Integer, nullable=False, default=0)

    # opening + sales - expenses
    expected_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    # closing - expected (negative = faltante, positive = sobrante)
    difference_cents = db.Column(db.Integer, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    totals_refreshed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "status": self.status,
            "opening_amount_cents": self.opening_amount_cents,
            "closing_amount_cents": self.closing_amount_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_cash_cents": self.total_cash_cents,
            "total_card_cents": self.total_card_cents,
            "total_transfer_cents": self.total_transfer_cents,
            "total_expenses_cents": self.total_expenses_cents,
            "total_extra_income_cents": self.total_extra_income_cents,
            "expected_amount_cents": self.expected_amount_cents,
            "difference_cents": self.difference_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "totals_refreshed_at": to_utc_z(self.totals_refreshed_at) if self.totals_refreshed_at else None,
            "opened_by": self.opened_by.username if self.opened_by else None,
            "closed_by": self.closed_by.username if self.closed_by else None,
            "notes": self.notes,
        }


class ManualCashMovement(db.Model):
    """
    Cash income or expense recorded by hand during a session
    (movimiento manual). Egresos feed total_expenses_cents, Ingresos
    feed total_extra_income_cents. Append-only.
    """
    __tablename__ = "movimientos_manuales"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_mov_manuales_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("sesiones_caja.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    category = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(255), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    receipt = db.Column(db.String(64), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_session_id": self.cash_session_id,
            "kind": self.kind,
            "category": self.category,
            "description": self.description,
            "payment_method": self.payment_method,
            "amount_cents": self.amount_cents,
            "receipt": self.receipt,
            "user": self.user.username if self.user else None,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(ManualCashMovement, "before_update")
def _reject_manual_movement_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        raise ValueError("cash movements are append-only")


@event.listens_for(ManualCashMovement, "before_delete")
def _reject_manual_movement_delete(mapper, connection, target):
    raise ValueError("cash movements are append-only")
