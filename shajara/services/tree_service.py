import logging
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from shajara.database import unit_of_work
from shajara.errors import NotFoundError
from shajara.models.tree import Tree, TreeAccess, Role
from shajara.models.user import User
from shajara.models.member import Member, MemberRelation
from shajara.models.invite import Invite
from shajara.models.merge import TreeMerge, MergeStatus
from typing import Optional, List, Tuple

logger = logging.getLogger(__name__)

class TreeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_tree(self, owner: User, name: Optional[str] = None, description: Optional[str] = None) -> Tree:
        tree = Tree(name=name or self.default_tree_name(owner), description=description)
        self.db.add(tree)

        # Creator administers the tree
        access = TreeAccess(tree=tree, user_id=owner.id, role=Role.ADMIN)
        self.db.add(access)

        await self.db.commit()
        await self.db.refresh(tree)
        logger.info(f"Created tree {tree.id} for user {owner.id}")
        return tree

    @staticmethod
    def default_tree_name(owner: User) -> str:
        return f"{owner.nickname or owner.phone}'s family"

    async def get_tree_by_id(self, tree_id: int) -> Optional[Tree]:
        result = await self.db.execute(select(Tree).filter(Tree.id == tree_id))
        return result.scalars().first()

    async def require_tree(self, tree_id: int) -> Tree:
        tree = await self.get_tree_by_id(tree_id)
        if not tree:
            raise NotFoundError("Tree not found", {"tree_id": tree_id})
        return tree

    async def get_user_trees(self, user_id: int) -> List[Tree]:
        result = await self.db.execute(
            select(Tree)
            .join(TreeAccess, TreeAccess.tree_id == Tree.id)
            .filter(TreeAccess.user_id == user_id)
            .order_by(TreeAccess.id)
        )
        return result.scalars().all()

    async def get_user_role(self, tree_id: int, user_id: int) -> Optional[Role]:
        result = await self.db.execute(
            select(TreeAccess.role).filter(TreeAccess.tree_id == tree_id, TreeAccess.user_id == user_id)
        )
        return result.scalars().first()

    async def get_active_tree(self, user_id: int) -> Tuple[Optional[Tree], Optional[Role]]:
        """First tree the user was granted access to, with their role on it."""
        result = await self.db.execute(
            select(Tree, TreeAccess.role)
            .join(TreeAccess, TreeAccess.tree_id == Tree.id)
            .filter(TreeAccess.user_id == user_id)
            .order_by(TreeAccess.id)
        )
        row = result.first()
        if not row:
            return None, None
        return row[0], row[1]

    async def get_or_create_tree(self, user: User) -> Tuple[Tree, Role]:
        # A user's first member creates an implicit tree
        tree, role = await self.get_active_tree(user.id)
        if tree:
            return tree, role
        tree = await self.create_tree(user)
        return tree, Role.ADMIN

    async def grant_access(self, tree_id: int, user_id: int, role: Role = Role.VIEWER) -> TreeAccess:
        result = await self.db.execute(
            select(TreeAccess).filter(TreeAccess.tree_id == tree_id, TreeAccess.user_id == user_id)
        )
        access = result.scalars().first()
        if access:
            if access.role != role:
                access.role = role
                await self.db.commit()
            return access

        access = TreeAccess(tree_id=tree_id, user_id=user_id, role=role)
        self.db.add(access)
        await self.db.commit()
        return access

    async def delete_tree(self, tree_id: int):
        """Removes a tree together with its members, their edges and every row that points at it."""
        await self.require_tree(tree_id)
        member_ids = select(Member.id).filter(Member.tree_id == tree_id)
        async with unit_of_work(self.db):
            await self.db.execute(
                delete(MemberRelation).where(
                    MemberRelation.member_id.in_(member_ids) | MemberRelation.related_id.in_(member_ids)
                )
            )
            await self.db.execute(delete(Member).where(Member.tree_id == tree_id))
            await self.db.execute(delete(TreeAccess).where(TreeAccess.tree_id == tree_id))
            await self.db.execute(delete(Invite).where(Invite.tree_id == tree_id))
            await detach_merges(self.db, tree_id)
            await self.db.execute(delete(Tree).where(Tree.id == tree_id))
        logger.info(f"Deleted tree {tree_id}")

async def detach_merges(db: AsyncSession, tree_id: int):
    """Rejects pending merges that involve the tree and clears references to it."""
    involves_tree = (TreeMerge.source_tree_id == tree_id) | (TreeMerge.target_tree_id == tree_id)
    await db.execute(
        update(TreeMerge)
        .where(involves_tree, TreeMerge.status == MergeStatus.PENDING)
        .values(status=MergeStatus.REJECTED)
    )
    await db.execute(
        update(TreeMerge)
        .where(TreeMerge.source_tree_id == tree_id)
        .values(source_tree_id=None)
    )
    await db.execute(
        update(TreeMerge)
        .where(TreeMerge.target_tree_id == tree_id)
        .values(target_tree_id=None)
    )
