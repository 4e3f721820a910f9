from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum, Boolean, UniqueConstraint, CheckConstraint, Index, case
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from shajara.database import Base
import enum

class RelationType(str, enum.Enum):
    FATHER = "FATHER"
    MOTHER = "MOTHER"
    SIBLING = "SIBLING"
    CHILD = "CHILD"
    SPOUSE = "SPOUSE"

PARENT_TYPES = (RelationType.FATHER, RelationType.MOTHER)

class Member(Base):
    __tablename__ = "family_members"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    birth_year = Column(Integer, nullable=True)
    death_year = Column(Integer, nullable=True)
    # Label chosen when the member was attached; see MemberRelation.role
    relation_type = Column(Enum(RelationType), nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Nullable: members may sit outside a tree while being moved
    tree_id = Column(Integer, ForeignKey("trees.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tree = relationship("Tree", back_populates="members")
    # edges where this member was the one attached
    related_to = relationship("MemberRelation", foreign_keys="MemberRelation.member_id", back_populates="member", cascade="all, delete-orphan")
    # edges where this member was the anchor
    related_from = relationship("MemberRelation", foreign_keys="MemberRelation.related_id", back_populates="related", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Member {self.id} {self.full_name!r} ({self.birth_year}) {self.relation_type}>"

class MemberRelation(Base):
    """
    One undirected edge between two members. member_id is the member that was
    attached, related_id the member it was attached to, and role how member_id
    relates to related_id at the time of linking.
    """
    __tablename__ = "member_relations"
    __table_args__ = (
        UniqueConstraint("member_id", "related_id", name="uq_member_relation_pair"),
        CheckConstraint("member_id <> related_id", name="ck_member_relation_distinct"),
    )

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False, index=True)
    related_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(RelationType), nullable=False)

    member = relationship("Member", foreign_keys=[member_id], back_populates="related_to")
    related = relationship("Member", foreign_keys=[related_id], back_populates="related_from")

# One edge per unordered pair: (A, B) and (B, A) collide
_edge = MemberRelation.__table__.c
Index(
    "uq_member_relation_unordered",
    case((_edge.member_id < _edge.related_id, _edge.member_id), else_=_edge.related_id),
    case((_edge.member_id < _edge.related_id, _edge.related_id), else_=_edge.member_id),
    unique=True,
)
