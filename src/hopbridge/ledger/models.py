"""SQLAlchemy models for the transaction ledger.

Token amounts are stored as decimal strings: uint256 values do not fit
any SQL integer type.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TransactionRecord(Base):
    """Persistent form of a CrossChainTransaction."""

    __tablename__ = "crosschain_transactions"

    transaction_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_address: Mapped[str] = mapped_column(String(66), nullable=False, index=True)
    source_chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source_token: Mapped[str] = mapped_column(String(66), nullable=False)
    target_token: Mapped[str] = mapped_column(String(66), nullable=False)
    amount_in: Mapped[str] = mapped_column(String(80), nullable=False)
    amount_out: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    estimated_amount_out: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    source_tx_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    bridge_message_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    target_tx_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(default=0)
    estimated_time_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actual_time_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    history: Mapped[list["StatusHistoryRecord"]] = relationship(
        back_populates="transaction",
        lazy="selectin",
        order_by="StatusHistoryRecord.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_crosschain_status_created", "status", "created_at"),)


class StatusHistoryRecord(Base):
    """One audit trail entry. Rows are only ever inserted."""

    __tablename__ = "crosschain_status_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(
        ForeignKey("crosschain_transactions.transaction_id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    transaction: Mapped["TransactionRecord"] = relationship(back_populates="history")
