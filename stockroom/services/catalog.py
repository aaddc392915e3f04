"""
Catálogo de productos: la única fuente de verdad de las cantidades.

El ejecutor de movimientos solo depende del protocolo `ProductCatalog`.
Hay dos implementaciones:
- `SqlProductCatalog`: tabla `producto` vía SQLModel. Admite lotes: todas las
  líneas se aplican en una transacción y se confirman juntas.
- `InMemoryProductCatalog`: diccionario en memoria, sin transacciones; cada
  línea se aplica y se confirma por separado (`supports_batch = False`).
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
from stockroom.exceptions import (
    CatalogError,
    CatalogUnavailableError,
    ProductNotFoundError,
    StockConflictError,
)
from stockroom.models.product import Product
from stockroom.schemas.service import LineResult, MovementErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineDelta:
    """Variación de una línea: positiva en entradas, negativa en distribuciones."""

    product_id: str
    delta: int
    product_name: str = ""


class ProductCatalog(Protocol):
    supports_batch: bool

    def read_snapshot(self, product_ids: Iterable[str]) -> Dict[str, int]: ...

    def apply_delta(self, product_id: str, delta: int) -> Tuple[str, int, int]:
        """Aplica `delta` de forma atómica. Devuelve (nombre, anterior, nueva)."""
        ...

    def apply_batch(self, deltas: List[LineDelta]) -> List[LineResult]: ...


def failed_line(delta: LineDelta, error: CatalogError) -> LineResult:
    return LineResult(
        product_id=delta.product_id,
        product_name=delta.product_name or None,
        success=False,
        error=MovementErrorCode(error.code),
        message=error.message,
    )


def applied_line(
    delta: LineDelta, name: str, old_quantity: int, new_quantity: int
) -> LineResult:
    return LineResult(
        product_id=delta.product_id,
        product_name=name or delta.product_name or None,
        success=True,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
    )


def apply_each(catalog: ProductCatalog, deltas: List[LineDelta]) -> List[LineResult]:
    """Aplica las líneas una a una con `apply_delta`.
    Una línea que falla queda como resultado fallido y no detiene las demás."""
    results: List[LineResult] = []
    for delta in deltas:
        try:
            name, old_quantity, new_quantity = catalog.apply_delta(
                delta.product_id, delta.delta
            )
        except CatalogError as e:
            logger.warning(
                "Línea de %s rechazada (%s): %s", delta.product_id, e.code, e.message
            )
            results.append(failed_line(delta, e))
            continue
        results.append(applied_line(delta, name, old_quantity, new_quantity))
    return results


def _check_result(product_id: str, current: int, delta: int) -> int:
    new_quantity = current + delta
    if new_quantity < 0:
        raise StockConflictError(product_id, available=current, requested=-delta)
    return new_quantity


class SqlProductCatalog:
    supports_batch = True

    def __init__(self, db: Session):
        self.db = db

    def read_snapshot(self, product_ids: Iterable[str]) -> Dict[str, int]:
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        try:
            rows = self.db.exec(
                select(Product.id, Product.quantity).where(Product.id.in_(ids))
            ).all()
        except SQLAlchemyError as e:
            logger.error("Error leyendo el stock del catálogo: %s", e)
            raise CatalogUnavailableError()
        return {product_id: quantity for product_id, quantity in rows}

    def _apply(self, product_id: str, delta: int) -> Tuple[str, int, int]:
        # FOR UPDATE: la base de datos serializa las escrituras sobre la fila
        product = self.db.get(
            Product, product_id, with_for_update=True, populate_existing=True
        )
        if product is None:
            raise ProductNotFoundError(product_id)

        old_quantity = product.quantity
        product.quantity = _check_result(product_id, old_quantity, delta)
        product.updated_at = datetime.now(timezone.utc)
        self.db.add(product)
        self.db.flush()
        return product.name, old_quantity, product.quantity

    def apply_delta(self, product_id: str, delta: int) -> Tuple[str, int, int]:
        try:
            result = self._apply(product_id, delta)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error aplicando stock a %s: %s", product_id, e)
            raise CatalogUnavailableError()
        return result

    def apply_batch(self, deltas: List[LineDelta]) -> List[LineResult]:
        """Aplica todas las líneas en una sola transacción.
        - Las líneas que fallan (producto inexistente, stock insuficiente) se
          omiten y el resto se confirma junto.
        - Si falla la propia transacción, fallan todas las líneas."""
        results: List[LineResult] = []
        try:
            for delta in deltas:
                try:
                    name, old_quantity, new_quantity = self._apply(
                        delta.product_id, delta.delta
                    )
                except (ProductNotFoundError, StockConflictError) as e:
                    logger.warning("Línea rechazada (%s): %s", e.code, e.message)
                    results.append(failed_line(delta, e))
                    continue
                results.append(applied_line(delta, name, old_quantity, new_quantity))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error confirmando el lote de stock: %s", e)
            error = CatalogUnavailableError()
            return [failed_line(delta, error) for delta in deltas]
        return results

    def get(self, product_id: str) -> Optional[Product]:
        return self.db.get(Product, product_id)


class InMemoryProductCatalog:
    """Catálogo en memoria. Cada línea se aplica de forma independiente."""

    supports_batch = False

    def __init__(self, products: Optional[Iterable[Product]] = None):
        self._lock = threading.Lock()
        self._products: Dict[str, Product] = {}
        self.available = True
        for product in products or []:
            self.add(product)

    def add(self, product: Product) -> Product:
        with self._lock:
            self._products[product.id] = product
        return product

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def read_snapshot(self, product_ids: Iterable[str]) -> Dict[str, int]:
        if not self.available:
            raise CatalogUnavailableError()
        return {
            product_id: self._products[product_id].quantity
            for product_id in product_ids
            if product_id in self._products
        }

    def apply_delta(self, product_id: str, delta: int) -> Tuple[str, int, int]:
        if not self.available:
            raise CatalogUnavailableError()
        with self._lock:
            product = self._products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            old_quantity = product.quantity
            product.quantity = _check_result(product_id, old_quantity, delta)
            product.updated_at = datetime.now(timezone.utc)
            return product.name, old_quantity, product.quantity

    def apply_batch(self, deltas: List[LineDelta]) -> List[LineResult]:
        """Sin transacción: cada línea se confirma al aplicarse."""
        return apply_each(self, deltas)
