from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from shajara.database import Base
from shajara.models.tree import Role
import secrets

def generate_token() -> str:
    return secrets.token_urlsafe(16)

class Invite(Base):
    __tablename__ = "invites"

    id = Column(String, primary_key=True, default=generate_token)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=False, index=True)
    role = Column(Enum(Role), nullable=False, default=Role.VIEWER)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tree = relationship("Tree", back_populates="invites")
