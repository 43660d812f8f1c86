"""
User and auth token CRUD
"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.base import utc_now
from mockmate.models.user import User, RefreshToken, PasswordReset
from .base import CRUDBase


class CRUDUser(CRUDBase[User]):
    """User CRUD"""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(
            select(self.model).where(self.model.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def email_taken(self, db: AsyncSession, email: str, exclude_id: str) -> bool:
        result = await db.execute(
            select(self.model.id).where(
                self.model.email == email.lower(), self.model.id != exclude_id
            )
        )
        return result.first() is not None

    async def get_active_ids(self, db: AsyncSession, role: Optional[str] = None) -> List[str]:
        """Ids of active users, optionally restricted to a role"""
        query = select(self.model.id).where(self.model.is_active == True)
        if role:
            query = query.where(self.model.role == role)
        result = await db.execute(query)
        return [row[0] for row in result.all()]

    async def get_active_ids_by_roles(self, db: AsyncSession, roles: List[str]) -> List[str]:
        result = await db.execute(
            select(self.model.id).where(
                self.model.is_active == True, self.model.role.in_(roles)
            )
        )
        return [row[0] for row in result.all()]

    async def filter_active_ids(self, db: AsyncSession, ids: List[str]) -> List[str]:
        if not ids:
            return []
        result = await db.execute(
            select(self.model.id).where(
                self.model.is_active == True, self.model.id.in_(ids)
            )
        )
        return [row[0] for row in result.all()]

    async def search(
        self,
        db: AsyncSession,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[User], int]:
        """Admin user search"""
        conditions = []
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(or_(
                self.model.email.ilike(pattern),
                self.model.first_name.ilike(pattern),
                self.model.last_name.ilike(pattern),
            ))
        if role:
            conditions.append(self.model.role == role)
        if status == "active":
            conditions.append(self.model.is_active == True)
        elif status == "inactive":
            conditions.append(self.model.is_active == False)
        elif status == "unverified":
            conditions.append(self.model.is_verified == False)
        elif status == "locked":
            conditions.append(self.model.locked_until > utc_now())
        return await self.paginate(db, conditions=conditions, page=page, page_size=page_size)

    async def touch_activity(self, db: AsyncSession, user: User) -> None:
        user.last_activity = utc_now()
        await db.flush()

    async def add_credits(self, db: AsyncSession, user: User, amount: int) -> User:
        """Apply a signed credit change"""
        user.credits = (user.credits or 0) + amount
        user.updated_at = utc_now()
        await db.flush()
        return user


class CRUDRefreshToken(CRUDBase[RefreshToken]):
    """Refresh token CRUD"""

    async def replace_for_user(
        self, db: AsyncSession, user_id: str, token: str, expires_at: datetime
    ) -> RefreshToken:
        """Drop the user's previous tokens and store the new one"""
        await self.delete_where(db, self.model.user_id == user_id)
        return await self.create(db, obj_in={
            "user_id": user_id, "token": token, "expires_at": expires_at
        })

    async def get_by_token(self, db: AsyncSession, token: str) -> Optional[RefreshToken]:
        result = await db.execute(select(self.model).where(self.model.token == token))
        return result.scalar_one_or_none()

    async def delete_for_user(self, db: AsyncSession, user_id: str) -> int:
        return await self.delete_where(db, self.model.user_id == user_id)


class CRUDPasswordReset(CRUDBase[PasswordReset]):
    """Password reset token CRUD"""

    async def get_valid(self, db: AsyncSession, token: str) -> Optional[PasswordReset]:
        result = await db.execute(
            select(self.model).where(
                self.model.token == token, self.model.expires_at > utc_now()
            )
        )
        return result.scalar_one_or_none()

    async def delete_for_user(self, db: AsyncSession, user_id: str) -> int:
        return await self.delete_where(db, self.model.user_id == user_id)

    async def delete_expired(self, db: AsyncSession) -> int:
        return await self.delete_where(db, self.model.expires_at < utc_now())


user_crud = CRUDUser(User)
refresh_token_crud = CRUDRefreshToken(RefreshToken)
password_reset_crud = CRUDPasswordReset(PasswordReset)
