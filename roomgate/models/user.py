from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.orm import relationship
from roomgate.models.base import Base, utcnow
from roomgate.schemas.user import UserType

class User(Base):
    __tablename__ = "users"

    username = Column(String(50), unique=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    avatar = Column(String(500), nullable=True)
    user_type = Column(Enum(UserType), nullable=False, default=UserType.STUDENT)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    room_memberships = relationship("RoomMembership", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', type='{self.user_type}')>"
