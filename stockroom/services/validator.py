"""
Validación de movimientos de stock.

Funciones puras: reciben el movimiento y, como mucho, una foto de las
cantidades actuales (`{product_id: quantity}`). No leen ni escriben nada.
"""

from typing import Dict, List, Optional
from stockroom.schemas.movement import MovementCreate
from stockroom.schemas.movement_line import MovementLineCreate
from stockroom.schemas.service import MovementErrorCode, ValidationIssue


def _is_well_formed(line: MovementLineCreate) -> bool:
    return (
        bool(line.product_id and line.product_id.strip())
        and line.quantity is not None
        and line.quantity > 0
    )


def snapshot_product_ids(movement: MovementCreate) -> List[str]:
    """IDs cuyo stock hace falta para validar el movimiento (sin repetir).
    Solo las distribuciones comprueban stock."""
    if movement.type != "distribution":
        return []
    return list(
        dict.fromkeys(line.product_id for line in movement.lines if _is_well_formed(line))
    )


def validate_movement(
    movement: MovementCreate, snapshot: Optional[Dict[str, int]] = None
) -> List[ValidationIssue]:
    """Devuelve la lista de problemas del movimiento; vacía si es válido.

    Orden de las comprobaciones:
    1. Al menos una línea (`EMPTY_BATCH`, y no se comprueba nada más).
    2. Cada línea con `product_id` y cantidad > 0 (`INVALID_LINE`). Se
       informan todas las líneas inválidas, no solo la primera.
    3. Las entradas llevan proveedor (`MISSING_SUPPLIER`).
    4. Las distribuciones llevan departamento (`MISSING_DEPARTMENT`).
    5. En distribuciones, la cantidad de cada línea no supera el stock de la
       foto (`INSUFFICIENT_STOCK`). Sin foto, este paso se omite; los
       productos que no aparecen en ella los rechaza el ejecutor.
    """
    if not movement.lines:
        return [
            ValidationIssue(
                code=MovementErrorCode.EMPTY_BATCH,
                message="El movimiento debe contener al menos una línea.",
            )
        ]

    issues: List[ValidationIssue] = []

    for number, line in enumerate(movement.lines, 1):
        if not (line.product_id and line.product_id.strip()):
            issues.append(
                ValidationIssue(
                    code=MovementErrorCode.INVALID_LINE,
                    line=number,
                    message=f"La línea {number} no indica el producto.",
                )
            )
        elif line.quantity is None:
            issues.append(
                ValidationIssue(
                    code=MovementErrorCode.INVALID_LINE,
                    line=number,
                    product_id=line.product_id,
                    message=(
                        f"La línea {number} ({line.product_name or line.product_id}) "
                        "no indica la cantidad."
                    ),
                )
            )
        elif line.quantity <= 0:
            issues.append(
                ValidationIssue(
                    code=MovementErrorCode.INVALID_LINE,
                    line=number,
                    product_id=line.product_id,
                    requested=line.quantity,
                    message=(
                        f"La línea {number} ({line.product_name or line.product_id}) "
                        f"tiene una cantidad no válida: {line.quantity}."
                    ),
                )
            )

    if movement.type == "stock_in" and not (
        movement.supplier and movement.supplier.strip()
    ):
        issues.append(
            ValidationIssue(
                code=MovementErrorCode.MISSING_SUPPLIER,
                message="Las entradas de stock deben indicar el proveedor.",
            )
        )

    if movement.type == "distribution" and not movement.department:
        issues.append(
            ValidationIssue(
                code=MovementErrorCode.MISSING_DEPARTMENT,
                message="Las distribuciones deben indicar el departamento.",
            )
        )

    if movement.type == "distribution" and snapshot is not None:
        for number, line in enumerate(movement.lines, 1):
            if not _is_well_formed(line) or line.product_id not in snapshot:
                continue
            available = snapshot[line.product_id]
            if line.quantity > available:
                issues.append(
                    ValidationIssue(
                        code=MovementErrorCode.INSUFFICIENT_STOCK,
                        line=number,
                        product_id=line.product_id,
                        available=available,
                        requested=line.quantity,
                        message=(
                            f"Stock insuficiente de {line.product_name or line.product_id}. "
                            f"Disponible: {available}, solicitado: {line.quantity}."
                        ),
                    )
                )

    return issues
