import datetime
from typing import Optional
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field


class Movement(SQLModel, table=True):
    """Registro de auditoría de un movimiento ya aplicado. No se modifica."""

    __tablename__ = "movimientos"

    id: int = Field(default=None, primary_key=True, nullable=False)
    type: str = Field(
        nullable=False, index=True
    )  # 'stock_in' o 'distribution', la restricción la ponemos en el esquema
    department: Optional[str] = Field(default=None, index=True)
    supplier: Optional[str] = Field(default=None)
    stock_manager: str = Field(nullable=False)
    notes: Optional[str] = Field(default=None)
    total_items: int = Field(nullable=False, ge=1)
    total_value: Optional[float] = Field(default=None)
    date: datetime.date = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).date()
    )
    timestamp: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
