import logging
from datetime import datetime, timedelta, timezone
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from shajara.config import get_settings
from shajara.database import unit_of_work
from shajara.errors import InviteExpiredError, NotFoundError
from shajara.models.invite import Invite
from shajara.models.tree import Role, TreeAccess
from shajara.services.tree_service import TreeService
from typing import Optional, Tuple

logger = logging.getLogger(__name__)
settings = get_settings()

ROLE_RANK = {Role.VIEWER: 0, Role.EDITOR: 1, Role.ADMIN: 2}

def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment

class InviteService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tree_service = TreeService(db)

    def invite_url(self, invite: Invite) -> str:
        return f"{settings.BOT_URL.rstrip('/')}/join/{invite.id}"

    async def create_invite(self, tree_id: int, role: Role = Role.VIEWER) -> Tuple[str, Invite]:
        await self.tree_service.require_tree(tree_id)
        invite = Invite(
            tree_id=tree_id,
            role=role,
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.INVITE_TTL_DAYS),
        )
        async with unit_of_work(self.db):
            self.db.add(invite)
        await self.db.refresh(invite)
        logger.info(f"Created invite for tree {tree_id} as {role.value}")
        return self.invite_url(invite), invite

    async def get_invite(self, invite_id: str) -> Optional[Invite]:
        result = await self.db.execute(select(Invite).filter(Invite.id == invite_id))
        return result.scalars().first()

    async def accept_invite(self, invite_id: str, user_id: int) -> TreeAccess:
        invite = await self.get_invite(invite_id)
        if not invite:
            raise NotFoundError("Invite not found", {"invite_id": invite_id})

        if _as_utc(invite.expires_at) < datetime.now(timezone.utc):
            async with unit_of_work(self.db):
                await self.db.execute(delete(Invite).where(Invite.id == invite.id))
            raise InviteExpiredError("Invite has expired", {"invite_id": invite_id})

        tree_id, role = invite.tree_id, invite.role
        result = await self.db.execute(
            select(TreeAccess).filter(TreeAccess.tree_id == tree_id, TreeAccess.user_id == user_id)
        )
        access = result.scalars().first()
        async with unit_of_work(self.db):
            if access:
                # Never downgrade an existing grant
                if ROLE_RANK[role] > ROLE_RANK[access.role]:
                    access.role = role
            else:
                access = TreeAccess(tree_id=tree_id, user_id=user_id, role=role)
                self.db.add(access)
            await self.db.execute(delete(Invite).where(Invite.id == invite.id))
        logger.info(f"User {user_id} joined tree {tree_id} as {role.value}")
        return access
