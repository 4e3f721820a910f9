from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from shajara.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Messaging identity (WhatsApp number without the "whatsapp:" prefix)
    phone = Column(String, unique=True, index=True, nullable=False)
    nickname = Column(String, nullable=True)
    language = Column(String, nullable=False, default="en")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
