import logging
from sqlalchemy import and_, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from shajara.database import unit_of_work
from shajara.errors import DuplicateRelationError, InvalidRelationError, NotFoundError, ValidationError
from shajara.models.member import Member, MemberRelation, RelationType
from shajara.services.relation_validator import find_duplicate, is_compatible
from shajara.utils.validators import validate_birth_year, validate_death_year, validate_full_name
from typing import Optional, List

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"full_name", "birth_year", "death_year", "notes", "is_private"}

class MemberService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_member(self, member_id: int) -> Optional[Member]:
        result = await self.db.execute(select(Member).filter(Member.id == member_id))
        return result.scalars().first()

    async def require_member(self, member_id: int) -> Member:
        member = await self.get_member(member_id)
        if not member:
            raise NotFoundError("Member not found", {"member_id": member_id})
        return member

    async def get_members_by_tree(self, tree_id: int) -> List[Member]:
        result = await self.db.execute(
            select(Member).filter(Member.tree_id == tree_id).order_by(Member.id)
        )
        return result.scalars().all()

    async def get_edges_by_tree(self, tree_id: int) -> List[MemberRelation]:
        tree_member_ids = select(Member.id).filter(Member.tree_id == tree_id)
        result = await self.db.execute(
            select(MemberRelation)
            .filter(MemberRelation.member_id.in_(tree_member_ids))
            .order_by(MemberRelation.id)
        )
        return result.scalars().all()

    async def get_neighbors(self, member_id: int) -> List[Member]:
        """Members linked to the given one, whichever side of the edge they sit on."""
        result = await self.db.execute(
            select(Member)
            .join(
                MemberRelation,
                or_(
                    and_(MemberRelation.member_id == member_id, MemberRelation.related_id == Member.id),
                    and_(MemberRelation.related_id == member_id, MemberRelation.member_id == Member.id),
                ),
            )
            .order_by(Member.id)
        )
        return result.scalars().unique().all()

    async def create_member(
        self,
        user_id: int,
        tree_id: Optional[int],
        full_name: str,
        relation_type: RelationType,
        birth_year: Optional[int] = None,
        death_year: Optional[int] = None,
        notes: Optional[str] = None,
        is_private: bool = False,
    ) -> Member:
        member = self._build_member(
            user_id, tree_id, full_name, relation_type, birth_year, death_year, notes, is_private
        )
        async with unit_of_work(self.db):
            self.db.add(member)
        await self.db.refresh(member)
        return member

    async def add_relative(
        self,
        user_id: int,
        anchor_id: int,
        full_name: str,
        relation_type: RelationType,
        birth_year: Optional[int] = None,
        death_year: Optional[int] = None,
        notes: Optional[str] = None,
        is_private: bool = False,
        tree_id: Optional[int] = None,
    ) -> Member:
        """
        Creates a member and links it to an existing one (the anchor).

        Raises NotFoundError when the anchor is missing or outside the tree,
        DuplicateRelationError when the anchor already has a relative with the
        same relation type, name and birth year, and InvalidRelationError when
        the relation types cannot be linked.

        The duplicate check and the insert are separate statements, so two
        concurrent requests for the same anchor can both pass the check.
        """
        member = self._build_member(
            user_id, tree_id, full_name, relation_type, birth_year, death_year, notes, is_private
        )
        relation_type = member.relation_type

        anchor = await self.get_member(anchor_id)
        if not anchor or (tree_id is not None and anchor.tree_id != tree_id):
            raise NotFoundError("Selected relative not found", {"member_id": anchor_id})
        if tree_id is None:
            member.tree_id = anchor.tree_id

        neighbors = await self.get_neighbors(anchor.id)
        existing = find_duplicate(neighbors, relation_type, member.full_name, member.birth_year)
        if existing:
            logger.warning(f"Duplicate relation detected: {existing.id}")
            raise DuplicateRelationError(
                "This relative has already been added",
                {"member_id": existing.id, "anchor_id": anchor.id},
            )

        if not is_compatible(relation_type, anchor.relation_type):
            logger.warning(f"Invalid relation type combination: {relation_type.value} with {anchor.relation_type.value}")
            raise InvalidRelationError(
                "These relation types cannot be linked",
                {"relation_type": relation_type.value, "anchor_relation_type": anchor.relation_type.value},
            )

        async with unit_of_work(self.db):
            self.db.add(member)
            await self.db.flush()
            self.db.add(MemberRelation(member_id=member.id, related_id=anchor.id, role=relation_type))

        await self.db.refresh(member)
        logger.debug(f"Created member {member.id} linked to {anchor.id} as {relation_type.value}")
        return member

    async def update_member(self, member_id: int, **kwargs) -> Member:
        member = await self.require_member(member_id)
        unknown = set(kwargs) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)})

        if "full_name" in kwargs:
            kwargs["full_name"] = validate_full_name(kwargs["full_name"])
        if kwargs.get("birth_year") is not None:
            kwargs["birth_year"] = validate_birth_year(kwargs["birth_year"])
        birth_year = kwargs.get("birth_year", member.birth_year)
        if kwargs.get("death_year") is not None:
            kwargs["death_year"] = validate_death_year(kwargs["death_year"], birth_year)
        elif member.death_year is not None and birth_year is not None and member.death_year < birth_year:
            validate_death_year(member.death_year, birth_year)

        async with unit_of_work(self.db):
            for key, value in kwargs.items():
                setattr(member, key, value)
        await self.db.refresh(member)
        return member

    async def delete_member(self, member_id: int):
        member = await self.require_member(member_id)
        async with unit_of_work(self.db):
            await self.db.execute(
                delete(MemberRelation).where(
                    or_(MemberRelation.member_id == member.id, MemberRelation.related_id == member.id)
                )
            )
            await self.db.execute(delete(Member).where(Member.id == member.id))
        logger.info(f"Deleted member {member_id}")

    @staticmethod
    def _build_member(user_id, tree_id, full_name, relation_type, birth_year, death_year, notes, is_private) -> Member:
        full_name = validate_full_name(full_name)
        if birth_year is not None:
            birth_year = validate_birth_year(birth_year)
        if death_year is not None:
            death_year = validate_death_year(death_year, birth_year)
        return Member(
            user_id=user_id,
            tree_id=tree_id,
            full_name=full_name,
            birth_year=birth_year,
            death_year=death_year,
            relation_type=RelationType(relation_type),
            notes=notes,
            is_private=is_private,
        )
