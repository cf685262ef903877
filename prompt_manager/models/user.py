import uuid
from sqlalchemy import Column, String, JSON, DateTime, func
from prompt_manager.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=True)
    full_name = Column(String(100), nullable=True)
    # Identity side-channel, e.g. {"website_folder_ids": [...]}
    user_metadata = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
