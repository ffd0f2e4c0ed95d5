from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from .base import Base, utcnow
from roomgate.schemas.post import PostTargetKind

class Post(Base):
    __tablename__ = "posts"

    content = Column(Text, nullable=False)
    target_kind = Column(Enum(PostTargetKind), nullable=False)
    target_id = Column(PG_UUID(as_uuid=True), nullable=False, index=True)

    author_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    author = relationship("User")

    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Post(id={self.id}, author_id={self.author_id}, content='{self.content[:50]}...')>"

class PostRead(Base):
    __tablename__ = "post_reads"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_reads_post_user"),)

    post_id = Column(PG_UUID(as_uuid=True), ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
