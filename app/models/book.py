from sqlmodel import SQLModel, Field, Relationship
from typing import Optional
from datetime import datetime

from app.models.user import User


class Book(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str
    genre: str = Field(index=True)

    price: float = Field(ge=0)

    author_id: int = Field(foreign_key="user.id", index=True)
    author: Optional["User"] = Relationship()

    # Stored as upload-relative paths ("uploads/covers/<file>")
    cover_image: str
    pdf_file: str

    rating: float = 0.0
    rating_count: int = 0
    sales_count: int = 0

    is_deleted: bool = Field(default=False, index=True)
    status: str = Field(default="pending", index=True)  # pending | approved | rejected

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
