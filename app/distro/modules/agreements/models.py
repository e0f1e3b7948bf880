from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.distro.models import Base

if TYPE_CHECKING:
    from app.distro.models import User


class AgreementRequest(Base):
    __tablename__ = "agreement_requests"
    __table_args__ = (
        Index("idx_agreement_requests_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    document_key: Mapped[str] = mapped_column(String(512), nullable=False)
    document_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # sha256 hex of the stored document
    signed_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending | verified | rejected

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", lazy="selectin")
