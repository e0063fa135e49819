import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(254), nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    disabled_at = Column(DateTime(timezone=True), nullable=True)


class UserRole(Base):
    __tablename__ = "user_role"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(16), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
        CheckConstraint("role IN ('admin', 'user')", name="ck_user_role_role"),
    )


class Profile(Base):
    __tablename__ = "profile"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, unique=True)
    full_name = Column(String(120), nullable=False)
    gender = Column(String(16), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    city = Column(String(80), nullable=True)
    education = Column(String(160), nullable=True)
    profession = Column(String(160), nullable=True)
    marital_status = Column(String(32), nullable=True)
    bio = Column(Text, nullable=True)
    requirements = Column(Text, nullable=True)
    profile_picture_url = Column(String, nullable=True)
    id_document_type = Column(String(32), nullable=True)
    id_document_ref = Column(String, nullable=True)
    selfie_ref = Column(String, nullable=True)
    phone = Column(String(32), nullable=True)
    whatsapp = Column(String(32), nullable=True)
    approved = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False)
    blocked = Column(Boolean, nullable=False, default=False)
    featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_profile_directory", "approved", "blocked"),
    )


class Package(Base):
    __tablename__ = "package"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(80), nullable=False, unique=True)
    price_pkr = Column(Integer, nullable=False)
    proposals_count = Column(Integer, nullable=False)
    validity_days = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint("price_pkr >= 0", name="ck_package_price"),
        CheckConstraint("proposals_count > 0", name="ck_package_proposals"),
        CheckConstraint("validity_days > 0", name="ck_package_validity"),
    )


class UserPackage(Base):
    __tablename__ = "user_package"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    package_id = Column(String(36), ForeignKey("package.id"), nullable=False)
    proposals_remaining = Column(Integer, nullable=False)
    payment_status = Column(String(16), nullable=False, default="pending")
    payment_proof_ref = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint("proposals_remaining >= 0", name="ck_user_package_remaining"),
        CheckConstraint("payment_status IN ('pending', 'approved', 'rejected')", name="ck_user_package_status"),
        Index("idx_user_package_user_id", "user_id"),
    )


class Proposal(Base):
    __tablename__ = "proposal"

    id = Column(String(36), primary_key=True, default=_uuid)
    sender_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    pair_low = Column(String(36), nullable=False)
    pair_high = Column(String(36), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("pair_low", "pair_high", name="uq_proposal_pair"),
        CheckConstraint("sender_id <> receiver_id", name="ck_proposal_not_self"),
        CheckConstraint("status IN ('pending', 'accepted', 'rejected')", name="ck_proposal_status"),
        Index("idx_proposal_sender_id", "sender_id"),
        Index("idx_proposal_receiver_id", "receiver_id"),
    )


class AdminAuditEvent(Base):
    __tablename__ = "admin_audit_event"

    id = Column(String(36), primary_key=True, default=_uuid)
    admin_user_id = Column(String(36), nullable=True)
    action = Column(String(64), nullable=False)
    payload_json = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ProductEvent(Base):
    __tablename__ = "product_event"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=True)
    event_name = Column(String(64), nullable=False)
    properties = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
