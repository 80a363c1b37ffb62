from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .config import TRANSACTION_HASH_LENGTH
from .database import Base, utcnow


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="admin")  # admin | super_admin | auditor
    full_name = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    logs = relationship("AuditLog", back_populates="user")


class Election(Base):
    __tablename__ = "elections"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="draft")  # draft | active | closed | inactive
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    voting_method = Column(String(50), nullable=True)
    privacy_level = Column(String(50), nullable=True)
    requires_verification = Column(Boolean, nullable=False, default=False)
    blockchain_address = Column(String(42), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    candidates = relationship("Candidate", back_populates="election", cascade="all, delete-orphan")


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)
    election_id = Column(Integer, ForeignKey("elections.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    party = Column(String(255), nullable=True)
    platform = Column(Text, nullable=True)
    biography = Column(Text, nullable=True)
    photo_url = Column(String(500), nullable=True)
    contact_email = Column(String(255), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    # Deactivation only; rows stay so vote history remains attributable.
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    election = relationship("Election", back_populates="candidates")


class LedgerTransaction(Base):
    __tablename__ = "blockchain_transactions"
    __table_args__ = (
        CheckConstraint(
            f"length(transaction_hash) <= {TRANSACTION_HASH_LENGTH}",
            name="ck_transaction_hash_length",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    transaction_hash = Column(String(TRANSACTION_HASH_LENGTH), unique=True, nullable=False, index=True)
    election_id = Column(Integer, ForeignKey("elections.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False)
    voter_address = Column(String(255), nullable=False)
    vote_data = Column(Text, nullable=False)
    signature = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="confirmed")
    timestamp = Column(DateTime, default=utcnow)

    vote = relationship("Vote", back_populates="transaction", uselist=False)


class Vote(Base):
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("blockchain_transactions.id"), unique=True, nullable=False)
    election_id = Column(Integer, ForeignKey("elections.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    voter_id = Column(String(64), nullable=False)  # anonymized token, never the raw address
    verification_status = Column(String(20), nullable=False, default="verified")
    timestamp = Column(DateTime, default=utcnow)

    transaction = relationship("LedgerTransaction", back_populates="vote")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    user_type = Column(String(20), nullable=False)  # voter | admin | system
    action = Column(String(100), nullable=False)
    resource_type = Column(String(100), nullable=False)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=utcnow)

    user = relationship("AdminUser", back_populates="logs")
