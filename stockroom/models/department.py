from typing import Optional
from sqlmodel import SQLModel, Field


class Department(SQLModel, table=True):
    __tablename__ = "departamento"

    id: str = Field(primary_key=True, max_length=50)  # slug: 'pastry', 'bakery'...
    name: str = Field(index=True, nullable=False, unique=True)
    description: Optional[str] = Field(default=None, max_length=255)
    active: bool = Field(default=True, nullable=False)
