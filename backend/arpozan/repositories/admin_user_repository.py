"""
Admin User Repository - dashboard operators and their roles
"""
from arpozan.core.errors import ValidationError
from arpozan.domain import tables
from arpozan.domain.admin_user import AdminUser, AdminUserCreate, AdminUserUpdate
from arpozan.domain.envelope import Envelope
from arpozan.repositories.base import BaseRepository


class AdminUserRepository(BaseRepository):
    table = tables.ADMIN_USERS
    entity_name = "Admin user"
    model = AdminUser
    create_schema = AdminUserCreate
    update_schema = AdminUserUpdate
    search_fields = ("email", "role")

    def get_by_user_id(self, user_id: str) -> Envelope:
        """Active admin record for an external identity, or None"""
        def work():
            if not user_id:
                raise ValidationError("User id is required")
            return self._find_one({"user_id": str(user_id), "is_active": True})

        return self._guard("get_by_user_id", work)
