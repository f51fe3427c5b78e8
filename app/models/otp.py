from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from app.database import Base


class OtpEntry(Base):
    __tablename__ = "otp_records"

    id = Column(Integer, primary_key=True)
    contact = Column(String(255), nullable=False)
    purpose = Column(String(32), nullable=False)
    otp_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_otp_contact_purpose", "contact", "purpose"),
        Index("ix_otp_expires_at", "expires_at"),
    )
