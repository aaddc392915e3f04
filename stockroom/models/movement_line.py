from sqlmodel import SQLModel, Field
from typing import Optional


class MovementLine(SQLModel, table=True):
    __tablename__ = "movimientos_lineas"

    movement_id: int = Field(foreign_key="movimientos.id", primary_key=True)
    line_number: int = Field(primary_key=True, ge=1)  # Conserva el orden de entrada
    product_id: str = Field(foreign_key="producto.id", nullable=False, index=True)
    product_name: str = Field(nullable=False)  # Nombre en el momento del envío
    quantity: int = Field(nullable=False, ge=1)  # La cantidad siempre debe ser mayor a 0
    unit: str = Field(default="", max_length=50)
    unit_price: Optional[float] = Field(default=None)
    old_quantity: int = Field(nullable=False, ge=0)
    new_quantity: int = Field(nullable=False, ge=0)
