from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from roomgate.models.base import Base, utcnow
from roomgate.schemas.room import RoomType

class Room(Base):
    __tablename__ = "rooms"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    cover_image = Column(String(500), nullable=False)
    room_type = Column(Enum(RoomType), nullable=False, default=RoomType.GENERAL)

    # Unique and immutable once assigned; the constraint is the authoritative guard
    join_code = Column(String(6), nullable=False, unique=True, index=True)
    creator_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    # Status flags
    is_archived = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)

    # Maintained by atomic increments only
    members_count = Column(Integer, nullable=False, default=0)
    posts_count = Column(Integer, nullable=False, default=0)

    # Settings
    allow_member_posting = Column(Boolean, nullable=False, default=True)
    allow_comments = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    creator = relationship("User")
    memberships = relationship("RoomMembership", back_populates="room")

    @property
    def settings(self) -> dict:
        return {
            "allow_member_posting": self.allow_member_posting,
            "allow_comments": self.allow_comments,
        }

    def __repr__(self):
        return f"<Room(id={self.id}, name='{self.name}', join_code='{self.join_code}')>"
