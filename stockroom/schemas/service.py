from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar
from pydantic import Field
from stockroom.schemas.base import CamelModel

T = TypeVar("T")


class MovementErrorCode(str, Enum):
    """Códigos de error de un movimiento de stock."""

    # Validación: los corrige quien envía el movimiento
    EMPTY_BATCH = "EMPTY_BATCH"
    INVALID_LINE = "INVALID_LINE"
    MISSING_SUPPLIER = "MISSING_SUPPLIER"
    MISSING_DEPARTMENT = "MISSING_DEPARTMENT"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_FIELD = "INVALID_FIELD"  # campo del movimiento con tipo o valor no admitido
    # Ejecución: por línea, no abortan el resto
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
    # El mismo requestId sigue procesándose
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    # Transporte
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"


# Códigos de la respuesta global (campo `code` de ServiceResponse)
VALIDATION_ERROR = "VALIDATION_ERROR"
EXECUTION_ERROR = "EXECUTION_ERROR"


class ValidationIssue(CamelModel):
    """Un problema de validación. `line` es la posición (desde 1) de la línea."""

    code: MovementErrorCode
    message: str
    line: Optional[int] = Field(None, ge=1)
    product_id: Optional[str] = None
    available: Optional[int] = None
    requested: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class LineResult(CamelModel):
    """Resultado de aplicar una línea al catálogo."""

    product_id: str
    success: bool
    product_name: Optional[str] = None
    old_quantity: Optional[int] = None
    new_quantity: Optional[int] = None
    error: Optional[MovementErrorCode] = None
    message: Optional[str] = None


class ServiceResponse(CamelModel, Generic[T]):
    """Sobre de todas las respuestas del servicio de movimientos.
    - `success` discrimina el resultado; nunca se lanza una excepción al llamante.
    - `errors` enumera los problemas en texto para mostrarlos todos a la vez.
    - `details` y `results` llevan la versión estructurada (validación / por línea).
    """

    success: bool
    data: Optional[T] = None
    message: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    code: Optional[str] = None
    details: Optional[List[ValidationIssue]] = None
    results: Optional[List[LineResult]] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None):
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(
        cls,
        message: str,
        errors: Optional[List[str]] = None,
        code: Optional[str] = None,
        **extra: Any,
    ):
        return cls(
            success=False, message=message, errors=errors or [], code=code, **extra
        )
