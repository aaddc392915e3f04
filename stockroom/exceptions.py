"""
Excepciones tipadas del catálogo de productos.

Cada excepción lleva un `code` legible por máquina, el mismo que acaba en
los resultados por línea de un movimiento:

    StockroomError
    |
    +-- CatalogError
        +-- ProductNotFoundError      (PRODUCT_NOT_FOUND)
        +-- StockConflictError        (CONCURRENT_MODIFICATION)
        +-- CatalogUnavailableError   (CATALOG_UNAVAILABLE)
"""


class StockroomError(Exception):
    """Base de todas las excepciones del paquete."""

    code: str = "STOCKROOM_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CatalogError(StockroomError):
    code = "CATALOG_ERROR"


class ProductNotFoundError(CatalogError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Producto {product_id} no encontrado")


class StockConflictError(CatalogError):
    """El stock cambió entre la validación y la aplicación y ya no alcanza."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"El stock del producto {product_id} cambió durante el movimiento. "
            f"Disponible: {available}, solicitado: {requested}"
        )


class CatalogUnavailableError(CatalogError):
    code = "CATALOG_UNAVAILABLE"

    def __init__(self, message: str = "Error de conexión con la base de datos"):
        super().__init__(message)
