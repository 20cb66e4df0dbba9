from sqlalchemy import Column, String, Text, Integer
from pagewise.models.base import Base, TimestampMixin

class OwnerStoreRecord(Base, TimestampMixin):
    """One versioned JSON document per owner (job records and their results)."""
    __tablename__ = "owner_stores"

    owner_id = Column(String, primary_key=True)
    schema_version = Column(Integer, nullable=False, default=1)
    payload = Column(Text, nullable=False)  # OwnerData as JSON

class UsageLogRecord(Base, TimestampMixin):
    __tablename__ = "usage_logs"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    tool_name = Column(String, nullable=False)
    model_name = Column(String, nullable=False)
    job_id = Column(String, index=True)
    source_name = Column(String)
    prompt_tokens = Column(Integer, nullable=False, default=0)
    response_tokens = Column(Integer, nullable=False, default=0)
