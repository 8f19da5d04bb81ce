"""Course model definitions."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from tutorflow.database import Base


class Course(Base):
    """Represents a tutor-authored course with ordered topics."""
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title = Column(String, nullable=False)
    description = Column(Text)
    image_url = Column(String)
    duration = Column(String)
    topics = Column(JSON, default=list)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    owner = relationship("Profile", lazy="joined")
