# services/user.py
from uuid import UUID
from typing import Self, ClassVar, Optional
from hackhub.db.schemas.user import UserRead, UserCreate, UserUpdate
from hackhub.db.database import DataBase
from hackhub.errors import NotFound
from hackhub.services.audit_log import instrument_service_class

class UserService:
    _instance: ClassVar[Optional["UserService"]] = None

    def __new__(cls) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self.database = DataBase()
        self._initialized = True

    async def create_user(self, user: UserCreate) -> UserRead:
        return await self.database.create_user(user)

    async def update_user(self, user: UserUpdate) -> UserRead:
        return await self.database.update_user(user)

    async def get_user(self, uid: UUID) -> UserRead:
        user = await self.database.get_user_by_id(uid)
        if user is None:
            raise NotFound("User not found", user_id=str(uid))
        return user

    async def resolve_user(self, target: UUID | str) -> UserRead:
        """
        Find a user by id, email or username.
        Strings that parse as UUIDs are treated as ids.
        """
        if isinstance(target, str):
            try:
                target = UUID(target)
            except ValueError:
                user = await self.database.get_user_by_login(target)
                if user is None:
                    raise NotFound("User not found", login=target)
                return user
        return await self.get_user(target)


instrument_service_class(UserService, prefix="services.user", exclude={"get_user", "resolve_user"})
