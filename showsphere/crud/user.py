from typing import Iterable, Optional
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from showsphere.models.user import User


class CRUDUser:
    async def get_user(self, db: AsyncSession, user_id: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_users_by_ids(self, db: AsyncSession, user_ids: Iterable[str]):
        ids = list(user_ids)
        if not ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(ids)))
        return result.scalars().all()

    async def get_all_users(self, db: AsyncSession):
        result = await db.execute(select(User))
        return result.scalars().all()

    async def count_users(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(User))
        return result.scalar_one()

    async def upsert_user(self, db: AsyncSession, user_id: str, name: str, email: str, image: Optional[str] = None) -> User:
        """Create the user or overwrite the synced fields of an existing one."""
        user = await self.get_user(db, user_id)
        if user is None:
            user = User(id=user_id, name=name, email=email, image=image)
            db.add(user)
        else:
            user.name = name
            user.email = email
            user.image = image
        await db.commit()
        return user

    async def delete_user(self, db: AsyncSession, user_id: str) -> bool:
        # bookings keep their user_id so paid history survives
        result = await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
        return result.rowcount > 0


crud_user = CRUDUser()
