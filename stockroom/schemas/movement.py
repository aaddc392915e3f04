import datetime
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator
from stockroom.schemas.base import CamelModel
from stockroom.schemas.movement_line import MovementLineCreate, MovementLineResponse

MovementType = Literal["stock_in", "distribution"]


class MovementBase(CamelModel):
    """Esquema base con los campos comunes de un movimiento."""

    type: MovementType = Field(
        ..., description="Debe ser 'stock_in' o 'distribution'"
    )
    department: Optional[str] = Field(
        None, description="Departamento destino (obligatorio en 'distribution')"
    )
    supplier: Optional[str] = Field(
        None, description="Proveedor (obligatorio en 'stock_in')"
    )
    stock_manager: str = Field(
        default="", description="Responsable de almacén que registra el movimiento"
    )
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("department", mode="before")
    @classmethod
    def department_id(cls, value: Any) -> Optional[str]:
        """El departamento llega como id (`"pastry"`) o como objeto `{id, name}`."""
        if isinstance(value, dict):
            value = value.get("id")
        if value is None:
            return None
        return str(value).strip() or None


class MovementCreate(MovementBase):
    """Esquema para la creación de movimientos.
    - Incluye `lines` para registrar las líneas asociadas."""

    lines: List[MovementLineCreate] = Field(
        ..., description="Lista de líneas del movimiento"
    )
    request_id: Optional[str] = Field(
        None,
        min_length=1,
        max_length=64,
        description="Id que genera el cliente; un reintento con el mismo id no se aplica dos veces",
    )


class MovementRecord(MovementBase):
    """Proyección de solo lectura de un movimiento ya aplicado."""

    id: int
    lines: List[MovementLineResponse] = Field(
        default=[], description="Líneas asociadas al movimiento"
    )
    total_items: int
    total_value: Optional[float] = None
    date: datetime.date
    timestamp: datetime.datetime


class PaginatedMovementsResponse(BaseModel):
    data: List[MovementRecord]
    total: int
    limit: int
    offset: int


class MovementSummary(BaseModel):
    type: str
    count: int


class DepartmentUsage(BaseModel):
    department: str
    movements: int
    quantity: int


class MovementStatistics(BaseModel):
    """Estadísticas de movimientos de un periodo."""

    period: str
    date_from: datetime.datetime
    date_to: datetime.datetime
    total_movements: int
    stock_in_count: int
    distribution_count: int
    quantity_in: int
    quantity_out: int
    total_value_in: float
    by_department: List[DepartmentUsage]
