"""Overtime request and approval models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from salary_engine.models.base import Base, TimestampMixin, utcnow


class OvertimeRequest(Base, TimestampMixin):
    """Overtime worked by an employee; status is owned by the approval workflow."""

    __tablename__ = "overtime_request"

    overtime_request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint("hours > 0", name="overtime_request_hours_check"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="overtime_request_status_check",
        ),
        Index("overtime_request_employee_date_idx", "employee_id", "date"),
    )


class OvertimeApproval(Base):
    """Calculated overtime pay for a request in a payroll month."""

    __tablename__ = "overtime_approval"

    approval_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    overtime_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("overtime_request.overtime_request_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    calculated_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[dt.datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "overtime_request_id",
            "month",
            name="overtime_approval_request_month_unique",
        ),
        Index("overtime_approval_employee_month_idx", "employee_id", "month"),
    )
