"""
User Session Model

One row per login. The refresh token is stored only as a SHA-256 hash.

Refresh tokens rotate: every successful refresh revokes the presented
token and issues a new one in the same family. Presenting a revoked
token again means it leaked, so the whole family is revoked
(REUSE_DETECTED).
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from bizflow.database import Base
import uuid


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Tenant chosen at login, may be NULL until the user picks one
    tenant_id = Column(String(36), nullable=True)

    # All rotations of one login share a family id
    family_id = Column(String(36), nullable=False, index=True)
    refresh_token_hash = Column(String(64), nullable=False, unique=True, index=True)

    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)

    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_reason = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_used_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index('idx_session_user_active', 'user_id', 'is_revoked'),
    )

    def __repr__(self):
        return f"<UserSession {self.id} user={self.user_id} revoked={self.is_revoked}>"

    def is_usable(self, now: datetime = None) -> bool:
        return not self.is_revoked and self.expires_at > (now or datetime.utcnow())

    def revoke(self, reason: str) -> None:
        self.is_revoked = True
        self.revoked_reason = reason
