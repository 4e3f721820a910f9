from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, String, Text, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from shajara.database import Base
import enum

class Role(str, enum.Enum):
    VIEWER = "VIEWER"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"

EDIT_ROLES = (Role.EDITOR, Role.ADMIN)

class Tree(Base):
    __tablename__ = "trees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Members survive their tree (tree_id is set to NULL), so no delete cascade here
    members = relationship("Member", back_populates="tree", passive_deletes=True)
    access_list = relationship("TreeAccess", back_populates="tree", cascade="all, delete-orphan")
    invites = relationship("Invite", back_populates="tree", cascade="all, delete-orphan")

class TreeAccess(Base):
    __tablename__ = "tree_access"
    __table_args__ = (
        UniqueConstraint("tree_id", "user_id", name="uq_tree_access_tree_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(Enum(Role), default=Role.VIEWER, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tree = relationship("Tree", back_populates="access_list")
    user = relationship("User", backref="accessed_trees")
