from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from shajara.models.user import User
from typing import Optional

class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_phone(self, phone: str) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.phone == phone))
        return result.scalars().first()

    async def create_user(self, phone: str, nickname: Optional[str] = None) -> User:
        user = User(phone=phone, nickname=nickname)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def get_or_create_user(self, phone: str, nickname: Optional[str] = None) -> User:
        user = await self.get_user_by_phone(phone)
        if not user:
            user = await self.create_user(phone, nickname)
        return user
