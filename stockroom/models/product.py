from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    __tablename__ = "producto"

    id: str = Field(
        default_factory=lambda: uuid4().hex, primary_key=True, max_length=32
    )  # El identificador lo asigna el catálogo
    name: str = Field(unique=True, index=True, nullable=False)
    quantity: int = Field(default=0, nullable=False, ge=0)  # Nunca negativa
    unit: str = Field(default="", nullable=False, max_length=50)
    unit_price: Optional[float] = Field(default=None, ge=0)
    # Fechas siempre en UTC y con zona horaria
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
