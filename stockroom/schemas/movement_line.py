from pydantic import Field
from typing import Optional
from stockroom.schemas.base import CamelModel


class MovementLineBase(CamelModel):
    """Esquema base con los campos comunes de una línea de movimiento."""

    product_id: Optional[str] = Field(
        default="", description="ID del producto que se mueve"
    )
    product_name: str = Field(
        default="", description="Nombre del producto en el momento del envío"
    )
    quantity: Optional[int] = Field(
        None,
        description="Cantidad de productos en el movimiento (debe ser mayor a 0)",
    )
    unit: str = Field(default="", max_length=50, description="Unidad de medida")
    unit_price: Optional[float] = Field(
        None, ge=0, description="Precio unitario (opcional, para el valor total)"
    )


class MovementLineCreate(MovementLineBase):
    """Esquema para la creación de una línea de movimiento.
    - `quantity` y `product_id` no se restringen aquí: el validador de
      movimientos informa de todas las líneas inválidas a la vez."""

    pass


class MovementLineResponse(MovementLineBase):
    """Esquema de respuesta con las cantidades antes y después del movimiento."""

    product_id: str
    quantity: int
    line_number: int
    old_quantity: int
    new_quantity: int
