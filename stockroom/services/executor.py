"""
Ejecución de movimientos: aplica las líneas de un movimiento ya validado
sobre el catálogo y devuelve un resultado por línea, en el mismo orden.

Un fallo en una línea no aborta las demás: el éxito parcial es un resultado
normal (`ExecutionResult.success == False` con las líneas aplicadas y las
fallidas), no una excepción.
"""

import logging
from dataclasses import dataclass, field
from typing import List
from stockroom.schemas.movement import MovementCreate
from stockroom.schemas.service import LineResult, MovementErrorCode
from stockroom.services.catalog import LineDelta, ProductCatalog, apply_each

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    lines: List[LineResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(line.success for line in self.lines)

    @property
    def failed(self) -> List[LineResult]:
        return [line for line in self.lines if not line.success]

    @property
    def catalog_unavailable(self) -> bool:
        """Todas las líneas fallaron porque el catálogo no respondió."""
        return bool(self.lines) and all(
            line.error == MovementErrorCode.CATALOG_UNAVAILABLE for line in self.lines
        )


def movement_deltas(movement: MovementCreate) -> List[LineDelta]:
    """Entradas suman la cantidad; distribuciones la restan."""
    sign = 1 if movement.type == "stock_in" else -1
    return [
        LineDelta(
            product_id=line.product_id,
            delta=sign * line.quantity,
            product_name=line.product_name,
        )
        for line in movement.lines
    ]


def execute_movement(
    movement: MovementCreate, catalog: ProductCatalog
) -> ExecutionResult:
    deltas = movement_deltas(movement)

    if getattr(catalog, "supports_batch", False):
        lines = catalog.apply_batch(deltas)
    else:
        lines = apply_each(catalog, deltas)

    result = ExecutionResult(lines=lines)
    if result.success:
        logger.info(
            "Movimiento %s aplicado: %d línea(s)", movement.type, len(result.lines)
        )
    else:
        logger.warning(
            "Movimiento %s aplicado parcialmente: %d de %d línea(s) fallidas",
            movement.type,
            len(result.failed),
            len(result.lines),
        )
    return result
