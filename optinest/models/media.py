from enum import Enum
from sqlmodel import Field, SQLModel

class MediaKind(str, Enum):
    POSTS = "posts"
    AUTHORS = "authors"
    ABOUT = "about"
    OTHER = "other"

class MediaAssetRecord(SQLModel):
    """Row shape of ``media_assets``."""
    object_path: str = Field(index=True)  # Storage-relative key, unique
    public_url: str
    file_name: str
    extension: str
    directory: str
    kind: MediaKind = MediaKind.OTHER
    size_bytes: int = 0
    modified_at: str

class MediaAsset(SQLModel):
    path: str  # Canonical public URL
    object_path: str = ""
    file_name: str
    extension: str
    directory: str
    kind: MediaKind = MediaKind.OTHER
    size_bytes: int = 0
    modified_at: str
