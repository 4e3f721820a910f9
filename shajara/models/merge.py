from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from shajara.database import Base
import enum

class MergeStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class TreeMerge(Base):
    __tablename__ = "tree_merges"

    id = Column(Integer, primary_key=True, index=True)
    # Both tree references are cleared when the tree is merged away
    source_tree_id = Column(Integer, ForeignKey("trees.id", ondelete="SET NULL"), nullable=True, index=True)
    target_tree_id = Column(Integer, ForeignKey("trees.id", ondelete="SET NULL"), nullable=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    approver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(Enum(MergeStatus), nullable=False, default=MergeStatus.PENDING)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    responded_at = Column(DateTime(timezone=True), nullable=True)

    source_tree = relationship("Tree", foreign_keys=[source_tree_id])
    target_tree = relationship("Tree", foreign_keys=[target_tree_id])
    requester = relationship("User", foreign_keys=[requester_id])
    approver = relationship("User", foreign_keys=[approver_id])
