from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

SHIFT_OPEN = "open"
SHIFT_CLOSED = "closed"


class Shift(db.Model):
    """
    One cashier's work session at one outlet.

    LIFECYCLE:
    - open: created by the cashier, end_time is NULL
    - closed: end_time set; terminal, never reopened

    At most one open shift per (outlet, user). The partial unique index
    holds that line even when two open requests race.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_open_outlet_user",
            "outlet_id",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.Index("ix_shifts_outlet_start", "outlet_id", "start_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    outlet = db.relationship("Outlet", backref=db.backref("shifts", lazy=True))
    user = db.relationship("User", backref=db.backref("shifts", lazy=True))

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "user_id": self.user_id,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
        }
