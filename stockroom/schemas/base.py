from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base de los esquemas expuestos en la API.
    - En JSON los campos viajan en camelCase (`productId`, `stockManager`...).
    - En Python se accede con snake_case; se aceptan ambos al construir."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
