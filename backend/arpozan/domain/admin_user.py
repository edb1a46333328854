"""
Admin User Domain Model

Links an identity-provider user to a dashboard role and permission set.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdminRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    VIEWER = "viewer"


class AdminUser(BaseModel):
    """
    Admin user domain model

    Fields:
        id: Admin user ID (uuid)
        user_id: External identity reference (unique)
        email: Contact email
        role: Dashboard role
        permissions: Permission names ("*" grants everything)
        is_active: Whether the admin may sign in
    """

    id: str = Field(..., description="Admin user ID")
    user_id: str = Field(..., description="External identity reference")
    email: Optional[str] = Field(None, description="Admin email")
    role: AdminRole = Field(AdminRole.VIEWER, description="Dashboard role")
    permissions: List[str] = Field(default_factory=list, description="Permission names")
    is_active: bool = Field(True, description="Whether admin is active")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    def has_permission(self, permission: str) -> bool:
        if not self.is_active:
            return False
        return "*" in self.permissions or permission in self.permissions

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class AdminUserCreate(BaseModel):
    """Schema for creating an admin user"""
    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    role: AdminRole = AdminRole.VIEWER
    permissions: List[str] = Field(default_factory=list)
    is_active: bool = True

    model_config = ConfigDict(extra="forbid", use_enum_values=True)


class AdminUserUpdate(BaseModel):
    """Schema for updating an admin user"""
    email: Optional[str] = None
    role: Optional[AdminRole] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid", use_enum_values=True)
