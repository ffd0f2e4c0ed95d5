from datetime import datetime, timezone
from sqlalchemy import Column
from sqlalchemy.orm import as_declarative
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
import uuid

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

@as_declarative()
class Base:
    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
