import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.common.exceptions import BadRequestError, NotFoundError
from app.roles.services import RoleService
from app.users.schemas import UserProfileUpdate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user: User, data: UserProfileUpdate) -> User:
        changes = data.model_dump(exclude_unset=True)
        if "gender" in changes and changes["gender"] is not None:
            changes["gender"] = changes["gender"].value
        if "first_name" in changes and not changes["first_name"]:
            raise BadRequestError("First name cannot be empty")

        for field, value in changes.items():
            setattr(user, field, value)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Profile updated: user_id={user.id}, fields={sorted(changes)}")
        return user

    async def list_users(self, search: Optional[str] = None, page: int = 1, per_page: int = 20) -> dict:
        query = select(User)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                    User.display_name.ilike(pattern),
                )
            )

        count_query = query.with_only_columns(func.count(User.id)).order_by(None)
        total = (await self.db.execute(count_query)).scalar_one()

        query = query.order_by(User.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
        users = (await self.db.execute(query)).scalars().all()

        return {
            "users": users,
            "total": total,
            "pages": (total + per_page - 1) // per_page,
            "page": page,
            "per_page": per_page,
        }

    async def set_blocked(self, user_id, is_blocked: bool, actor: User) -> User:
        if user_id == actor.id:
            raise BadRequestError("You cannot block yourself")
        user = await self.get_user(user_id)
        user.is_blocked = is_blocked
        await self.db.commit()
        logger.info(f"User {user.id} {'blocked' if is_blocked else 'unblocked'} by {actor.id}")
        return user

    async def assign_role(self, user_id, role_id) -> User:
        user = await self.get_user(user_id)
        if not await RoleService(self.db).role_exists(role_id):
            raise NotFoundError("Role not found")
        user.role_id = role_id
        await self.db.commit()
        logger.info(f"Role {role_id} assigned to user {user.id}")
        return user

    async def deactivate(self, user_id, actor: User) -> None:
        """Accounts are deactivated rather than removed; their events and messages stay intact."""
        if user_id == actor.id:
            raise BadRequestError("You cannot delete yourself")
        user = await self.get_user(user_id)
        user.is_active = False
        user.reset_token = None
        user.reset_token_expiry = None
        await self.db.commit()
        logger.info(f"User {user.id} deactivated by {actor.id}")
