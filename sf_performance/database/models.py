"""
Database Models

The persisted sales-order table. One row per completed order (PS);
order_id is the business key and is unique across the table.
"""

from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sf_performance.domain import OrderRecord


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class SalesOrder(Base):
    """
    Sales Order Table

    Written only by the upload pipeline (full replace or merge), read as a
    snapshot by the dashboard queries.
    """
    __tablename__ = "sales_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Sales force
    agent_code: Mapped[Optional[str]] = mapped_column(String(50))
    agent_name: Mapped[Optional[str]] = mapped_column(String(200))
    team_leader_code: Mapped[Optional[str]] = mapped_column(String(50))
    team_leader_name: Mapped[Optional[str]] = mapped_column(String(200))

    # Organisation
    agency: Mapped[Optional[str]] = mapped_column(String(200))
    area: Mapped[Optional[str]] = mapped_column(String(100))
    regional: Mapped[Optional[str]] = mapped_column(String(100))
    branch: Mapped[Optional[str]] = mapped_column(String(100))
    work_area: Mapped[Optional[str]] = mapped_column(String(200))

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_sales_orders_agent_code", "agent_code"),
        Index("ix_sales_orders_order_date", "order_date"),
        Index("ix_sales_orders_regional_branch", "regional", "branch"),
    )

    @classmethod
    def from_record(cls, record: OrderRecord) -> "SalesOrder":
        return cls(**record.to_dict())

    def to_record(self) -> OrderRecord:
        return OrderRecord(
            order_id=self.order_id,
            order_date=self.order_date,
            agent_code=self.agent_code,
            agent_name=self.agent_name,
            team_leader_name=self.team_leader_name,
            team_leader_code=self.team_leader_code,
            agency=self.agency,
            area=self.area,
            regional=self.regional,
            branch=self.branch,
            work_area=self.work_area,
        )
