from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import text

from prospect_workflow.db.base import Base
from prospect_workflow.models import ConversationStatus


class ConversationStateRow(Base):
    __tablename__ = "conversation_state"

    __table_args__ = (Index("ix_conversation_state_status", "status"),)

    customer_id: Mapped[str] = mapped_column(Text, primary_key=True)
    status: Mapped[ConversationStatus] = mapped_column(
        Enum(
            ConversationStatus,
            name="conversation_status_enum",
            validate_strings=True,
        ),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return (
            "ConversationStateRow("
            f"customer_id={self.customer_id!r}, status={self.status.value!r}, "
            f"version={self.version!r}"
            ")"
        )


class ClientRecordRow(Base):
    __tablename__ = "client_record"

    address: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    property_type: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_type: Mapped[str] = mapped_column(Text, nullable=False)
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"ClientRecordRow(address={self.address!r}, name={self.name!r})"


__all__ = ["ClientRecordRow", "ConversationStateRow"]
