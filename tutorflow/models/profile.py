"""Profile model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, String
from tutorflow.database import Base


class Profile(Base):
    """Represents the mutable per-user record holding name, avatar and role."""
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(String)
    avatar_url = Column(String)
    role = Column(String, nullable=False)  # student/tutor/admin
    bio = Column(String)
    updated_at = Column(DateTime(timezone=True))
