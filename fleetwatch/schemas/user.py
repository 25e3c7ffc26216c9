"""
Pydantic schemas for users, actors and authentication
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
from fleetwatch.models.user import UserRole


class Actor(BaseModel):
    """The current authenticated user, read-only input to the geofence core"""
    id: str
    role: UserRole
    client_id: Optional[str] = None
    name: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def is_superuser(self) -> bool:
        return self.role == UserRole.SUPERUSER

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, role=user.role, client_id=user.client_id, name=user.full_name)


class UserSummary(BaseModel):
    """A user as returned by the user directory"""
    id: str
    name: str
    email: str
    role: UserRole
    client_id: Optional[str] = None


class UserListResponse(BaseModel):
    users: list[UserSummary]
    total: int


# Auth schemas
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
