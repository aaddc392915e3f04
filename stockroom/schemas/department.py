from pydantic import BaseModel, Field
from typing import List, Optional
from stockroom.schemas.base import CamelModel


class DepartmentBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=255)


class DepartmentCreate(DepartmentBase):
    """
    Esquema para crear un departamento.
    - `id` es opcional: si no se envía se genera a partir del nombre.
    """

    id: Optional[str] = Field(None, min_length=2, max_length=50, pattern="^[a-z0-9_-]+$")


class DepartmentUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=255)
    active: Optional[bool] = None


class DepartmentResponse(DepartmentBase):
    id: str
    active: bool


class PaginatedDepartmentResponse(BaseModel):
    data: List[DepartmentResponse]
    total: int
    limit: int
    offset: int


class DepartmentExistsResponse(BaseModel):
    exists: bool
