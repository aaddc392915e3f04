import datetime
from typing import Optional
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field


class MovementRequest(SQLModel, table=True):
    """Petición de movimiento ya recibida, identificada por el `requestId` del cliente.

    La fila se reserva antes de tocar el stock; al terminar guarda la respuesta
    enviada, que se devuelve tal cual si el cliente reintenta con el mismo id."""

    __tablename__ = "movimientos_peticiones"

    request_id: str = Field(primary_key=True, max_length=64)
    movement_id: Optional[int] = Field(default=None, foreign_key="movimientos.id")
    response: Optional[str] = Field(default=None)  # ServiceResponse en JSON
    created_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
