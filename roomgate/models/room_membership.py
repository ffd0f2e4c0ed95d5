from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from .base import Base, utcnow

class RoomMembership(Base):
    __tablename__ = "room_memberships"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_room_memberships_room_user"),
        # Only populated under the single-room policy; NULLs never collide
        UniqueConstraint("exclusive_user_id", name="uq_room_memberships_exclusive_user"),
        Index("ix_room_memberships_room_pending", "room_id", "is_pending"),
    )

    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(PG_UUID(as_uuid=True), ForeignKey("rooms.id"), nullable=False, index=True)
    exclusive_user_id = Column(PG_UUID(as_uuid=True), nullable=True)

    is_pending = Column(Boolean, nullable=False, default=True)
    is_cr = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_hidden = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="room_memberships")
    room = relationship("Room", back_populates="memberships")

    def __repr__(self):
        return (
            f"<RoomMembership(id={self.id}, user_id={self.user_id}, room_id={self.room_id}, "
            f"pending={self.is_pending})>"
        )
