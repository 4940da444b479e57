from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.user import User, ClientProfile

class UserDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str):
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def get_by_id(self, user_id: int):
        return await self.db.get(User, user_id)

    async def create_user(self, user: User):
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

class ClientProfileDAO:
    """Client directory: maps a user account to its client profile."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_user_id(self, user_id: int):
        result = await self.db.execute(
            select(ClientProfile).where(ClientProfile.user_id == user_id)
        )
        return result.scalars().first()

    async def get_by_id(self, client_profile_id: int):
        return await self.db.get(ClientProfile, client_profile_id)

    async def create_profile(self, profile: ClientProfile):
        self.db.add(profile)
        await self.db.commit()
        await self.db.refresh(profile)
        return profile
