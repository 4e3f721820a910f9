"""
Two-phase tree merge: a merge is requested, then approved (or rejected) by the
recorded approver. Approval folds every member of the source tree into the
target tree and removes the source tree in a single unit of work.
"""
import logging
from datetime import datetime, timezone
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from shajara.database import unit_of_work
from shajara.errors import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from shajara.models.invite import Invite
from shajara.models.member import Member
from shajara.models.merge import MergeStatus, TreeMerge
from shajara.models.tree import Tree, TreeAccess
from shajara.services.ancestor_matcher import SharedAncestor, find_shared_ancestors
from shajara.services.member_service import MemberService
from shajara.services.tree_service import TreeService, detach_merges
from typing import List, Optional

logger = logging.getLogger(__name__)

class MergeService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tree_service = TreeService(db)
        self.member_service = MemberService(db)

    async def get_merge(self, merge_id: int) -> Optional[TreeMerge]:
        result = await self.db.execute(select(TreeMerge).filter(TreeMerge.id == merge_id))
        return result.scalars().first()

    async def list_pending_for(self, approver_id: int) -> List[TreeMerge]:
        result = await self.db.execute(
            select(TreeMerge)
            .filter(TreeMerge.approver_id == approver_id, TreeMerge.status == MergeStatus.PENDING)
            .order_by(TreeMerge.created_at.desc(), TreeMerge.id.desc())
        )
        return result.scalars().all()

    async def find_shared_ancestors(self, source_tree_id: int, target_tree_id: int) -> List[SharedAncestor]:
        source_members = await self.member_service.get_members_by_tree(source_tree_id)
        target_members = await self.member_service.get_members_by_tree(target_tree_id)
        return find_shared_ancestors(source_members, target_members)

    async def request_merge(
        self, source_tree_id: int, target_tree_id: int, requester_id: int, approver_id: int
    ) -> TreeMerge:
        await self.tree_service.require_tree(source_tree_id)
        await self.tree_service.require_tree(target_tree_id)
        if source_tree_id == target_tree_id:
            raise ValidationError("A tree cannot be merged into itself", {"tree_id": source_tree_id})

        shared = await self.find_shared_ancestors(source_tree_id, target_tree_id)
        if not shared:
            raise ValidationError(
                "The trees have no shared ancestors",
                {"source_tree_id": source_tree_id, "target_tree_id": target_tree_id},
            )

        merge = TreeMerge(
            source_tree_id=source_tree_id,
            target_tree_id=target_tree_id,
            requester_id=requester_id,
            approver_id=approver_id,
            status=MergeStatus.PENDING,
        )
        async with unit_of_work(self.db):
            self.db.add(merge)
        await self.db.refresh(merge)
        logger.info(
            f"Merge {merge.id} requested: tree {source_tree_id} -> {target_tree_id} "
            f"({len(shared)} shared ancestors)"
        )
        return merge

    async def _load_for_response(self, merge_id: int, approver_id: int) -> TreeMerge:
        merge = await self.get_merge(merge_id)
        if not merge:
            raise NotFoundError("Merge request not found", {"merge_id": merge_id})
        if merge.approver_id != approver_id:
            raise UnauthorizedError("Not authorized to approve this merge", {"merge_id": merge_id})
        if merge.status != MergeStatus.PENDING:
            raise InvalidStateError(
                "Merge request is not pending", {"merge_id": merge_id, "status": merge.status.value}
            )
        return merge

    async def _transition(self, merge_id: int, status: MergeStatus):
        # Conditional on PENDING so a concurrent approval cannot apply twice
        result = await self.db.execute(
            update(TreeMerge)
            .where(TreeMerge.id == merge_id, TreeMerge.status == MergeStatus.PENDING)
            .values(status=status, responded_at=datetime.now(timezone.utc))
        )
        if result.rowcount != 1:
            raise InvalidStateError("Merge request is not pending", {"merge_id": merge_id})

    async def approve_merge(self, merge_id: int, approver_id: int) -> TreeMerge:
        merge = await self._load_for_response(merge_id, approver_id)
        source_tree_id = merge.source_tree_id
        target_tree_id = merge.target_tree_id

        async with unit_of_work(self.db):
            await self._transition(merge.id, MergeStatus.APPROVED)
            moved = await self._move_members(source_tree_id, target_tree_id)
            await self._move_dependents(source_tree_id, target_tree_id)
            await detach_merges(self.db, source_tree_id)
            await self.db.execute(delete(Tree).where(Tree.id == source_tree_id))

        await self.db.refresh(merge)
        logger.info(f"Merge {merge.id} approved: moved {moved} members from tree {source_tree_id} to {target_tree_id}")
        return merge

    async def reject_merge(self, merge_id: int, approver_id: int) -> TreeMerge:
        merge = await self._load_for_response(merge_id, approver_id)
        async with unit_of_work(self.db):
            await self._transition(merge.id, MergeStatus.REJECTED)
        await self.db.refresh(merge)
        logger.info(f"Merge {merge.id} rejected")
        return merge

    async def _move_members(self, source_tree_id: int, target_tree_id: int) -> int:
        result = await self.db.execute(
            update(Member)
            .where(Member.tree_id == source_tree_id)
            .values(tree_id=target_tree_id)
        )
        return result.rowcount

    async def _move_dependents(self, source_tree_id: int, target_tree_id: int):
        """Carries access grants and invites over to the target tree."""
        target_users = select(TreeAccess.user_id).filter(TreeAccess.tree_id == target_tree_id)
        # Users already on the target keep their target grant
        await self.db.execute(
            update(TreeAccess)
            .where(TreeAccess.tree_id == source_tree_id, TreeAccess.user_id.not_in(target_users))
            .values(tree_id=target_tree_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.execute(delete(TreeAccess).where(TreeAccess.tree_id == source_tree_id))
        await self.db.execute(
            update(Invite)
            .where(Invite.tree_id == source_tree_id)
            .values(tree_id=target_tree_id)
        )
