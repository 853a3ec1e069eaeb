from typing import Optional
from sqlmodel import Field, SQLModel

class Author(SQLModel):
    id: str = Field(index=True)
    name: str
    role: str
    short_bio: str
    bio: str
    avatar: str
    x_url: Optional[str] = None

    # Links the profile to an admin account (editors may only touch these posts)
    admin_user_id: Optional[str] = None

    post_count: Optional[int] = None
