from typing import Optional
from enum import Enum
from sqlmodel import Field, SQLModel

class AdminRole(str, Enum):
    ADMIN = "admin"  # Full access
    EDITOR = "editor"  # Own posts only, via the linked author profile

class AdminUser(SQLModel):
    id: str
    email: str = Field(index=True)
    name: str
    role: AdminRole = AdminRole.EDITOR
    is_active: bool = True

    # Timestamps
    created_at: str
    updated_at: str
    last_login_at: Optional[str] = None

class StoredAdminUser(AdminUser):
    password_hash: str

class AdminSession(SQLModel):
    id: str
    token_hash: str = Field(index=True)
    user_id: str
    role: AdminRole = AdminRole.EDITOR
    created_at: str
    expires_at: str
    last_seen_at: str
    user_agent: Optional[str] = None

class LoginRateLimit(SQLModel):
    key: str
    count: int = 0
    first_attempt_at: str
    blocked_until: Optional[str] = None
