"""
Resume CRUD
"""
from typing import List, Optional
from sqlalchemy import select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.resume import UserResume, ResumeCreate, ResumeUpdate
from .base import CRUDBase


class CRUDResume(CRUDBase[UserResume]):
    """Resume CRUD"""

    async def get_owned(self, db: AsyncSession, resume_id: str, user_id: str) -> Optional[UserResume]:
        result = await db.execute(
            select(self.model).where(self.model.id == resume_id, self.model.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, db: AsyncSession, user_id: str) -> List[UserResume]:
        result = await db.execute(
            select(self.model)
            .where(self.model.user_id == user_id)
            .order_by(self.model.is_default.desc(), self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def clear_default(self, db: AsyncSession, user_id: str) -> None:
        await db.execute(
            sa_update(self.model).where(self.model.user_id == user_id).values(is_default=False)
        )

    async def create_resume(self, db: AsyncSession, *, user_id: str, obj_in: ResumeCreate) -> UserResume:
        """Create a resume; the first one (or an explicit default) becomes the default"""
        has_any = await self.count(db, self.model.user_id == user_id) > 0
        data = obj_in.model_dump()
        if data.get("is_default") or not has_any:
            await self.clear_default(db, user_id)
            data["is_default"] = True
        return await self.create(db, obj_in={**data, "user_id": user_id})

    async def update_resume(self, db: AsyncSession, *, db_obj: UserResume, obj_in: ResumeUpdate) -> UserResume:
        data = obj_in.model_dump(exclude_unset=True)
        if data.get("is_default"):
            await self.clear_default(db, db_obj.user_id)
        return await self.update(db, db_obj=db_obj, obj_in=data)

    async def set_default(self, db: AsyncSession, resume: UserResume) -> UserResume:
        await self.clear_default(db, resume.user_id)
        return await self.update(db, db_obj=resume, obj_in={"is_default": True})


resume_crud = CRUDResume(UserResume)
