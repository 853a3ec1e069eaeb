from typing import Optional
from sqlmodel import Field, SQLModel

class NewsletterSubscriber(SQLModel):
    id: str
    email: str = Field(index=True)  # Lowercase, unique
    submitted_at: str  # ISO timestamp
    source_path: Optional[str] = None
