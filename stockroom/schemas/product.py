from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from stockroom.schemas.base import CamelModel


class ProductBase(CamelModel):
    """
    Esquema base para productos.
    - Define los campos comunes a todos los esquemas.
    - `name` es único en el catálogo (se compara respetando mayúsculas).
    """

    name: str = Field(..., min_length=1, max_length=100)
    unit: str = Field(default="", max_length=50)
    unit_price: Optional[float] = Field(None, ge=0)


class ProductCreate(ProductBase):
    """
    Esquema para la creación de un producto.
    - `quantity` es el stock inicial; después solo cambia mediante movimientos.
    """

    quantity: int = Field(default=0, ge=0)


class ProductUpdate(CamelModel):
    """
    Esquema para la actualización de un producto.
    - No incluye `quantity`: el stock solo se modifica con movimientos.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    unit: Optional[str] = Field(None, max_length=50)
    unit_price: Optional[float] = Field(None, ge=0)


class ProductResponse(ProductBase):
    """
    Esquema para respuestas de la API.
    - Incluye `id` y `quantity`, que gestiona el catálogo.
    """

    id: str
    quantity: int


class PaginatedProductResponse(BaseModel):
    data: List[ProductResponse]
    total: int
    limit: int
    offset: int


class SnapshotRequest(CamelModel):
    product_ids: List[str] = Field(..., description="IDs de los productos a consultar")


class SnapshotResponse(BaseModel):
    """Cantidades actuales por ID; los productos inexistentes no aparecen."""

    quantities: Dict[str, int]
