"""
Registro de movimientos de stock: valida, aplica sobre el catálogo y, si
todas las líneas se aplicaron, guarda el registro de auditoría.

`submit_movement` nunca lanza por errores de negocio ni del catálogo:
siempre devuelve un `ServiceResponse`.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
from stockroom.exceptions import CatalogUnavailableError
from stockroom.models.movement import Movement
from stockroom.models.movement_line import MovementLine
from stockroom.models.movement_request import MovementRequest
from stockroom.schemas.movement import MovementCreate, MovementRecord
from stockroom.schemas.movement_line import MovementLineResponse
from stockroom.schemas.service import (
    EXECUTION_ERROR,
    VALIDATION_ERROR,
    LineResult,
    MovementErrorCode,
    ServiceResponse,
)
from stockroom.services.catalog import ProductCatalog
from stockroom.services.executor import ExecutionResult, execute_movement
from stockroom.services.notifications import (
    NotificationService,
    build_movement_notification,
)
from stockroom.services.validator import snapshot_product_ids, validate_movement

logger = logging.getLogger(__name__)


def movement_total_value(movement: MovementCreate) -> Optional[float]:
    """Suma de cantidad * precio; None si ninguna línea trae precio."""
    priced = [line for line in movement.lines if line.unit_price is not None]
    if not priced:
        return None
    return round(sum(line.quantity * line.unit_price for line in priced), 2)


def to_record(movement: Movement, lines: List[MovementLine]) -> MovementRecord:
    return MovementRecord(
        id=movement.id,
        type=movement.type,
        department=movement.department,
        supplier=movement.supplier,
        stock_manager=movement.stock_manager,
        notes=movement.notes,
        total_items=movement.total_items,
        total_value=movement.total_value,
        date=movement.date,
        timestamp=movement.timestamp,
        lines=[MovementLineResponse.model_validate(line) for line in lines],
    )


def load_record(db: Session, movement: Movement) -> MovementRecord:
    lines = db.exec(
        select(MovementLine)
        .where(MovementLine.movement_id == movement.id)
        .order_by(MovementLine.line_number)
    ).all()
    return to_record(movement, list(lines))


class StockMovementService:
    def __init__(
        self,
        db: Session,
        catalog: ProductCatalog,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.catalog = catalog
        self.notifier = notifier

    def submit_movement(
        self, movement: MovementCreate
    ) -> ServiceResponse[MovementRecord]:
        """Registra el movimiento. Con `request_id`, un reintento del mismo
        envío devuelve la respuesta original sin volver a tocar el stock."""
        if not movement.request_id:
            return self._submit(movement)

        previous = self._claim_request(movement.request_id)
        if previous is not None:
            return previous

        response = self._submit(movement)
        self._finish_request(movement.request_id, response)
        return response

    def _claim_request(self, request_id: str) -> Optional[ServiceResponse]:
        """Reserva el id. Si ya existía devuelve la respuesta guardada."""
        try:
            existing = self.db.get(MovementRequest, request_id)
            if existing is None:
                self.db.add(MovementRequest(request_id=request_id))
                self.db.commit()
                return None
        except IntegrityError:
            # Otra petición con el mismo id lo reservó a la vez y sigue en curso
            self.db.rollback()
            existing = None
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("No se pudo reservar la petición %s: %s", request_id, e)
            return ServiceResponse.fail(
                message="Error de conexión con la base de datos",
                errors=["Error de conexión con la base de datos"],
                code=MovementErrorCode.CATALOG_UNAVAILABLE.value,
            )

        logger.info("Petición repetida: %s", request_id)
        if existing is None or existing.response is None:
            return ServiceResponse.fail(
                message="El movimiento con este requestId aún se está procesando.",
                errors=[f"{MovementErrorCode.DUPLICATE_REQUEST.value}: {request_id}"],
                code=MovementErrorCode.DUPLICATE_REQUEST.value,
            )
        return ServiceResponse[MovementRecord].model_validate_json(existing.response)

    def _finish_request(self, request_id: str, response: ServiceResponse) -> None:
        """Guarda la respuesta si el stock pudo cambiar. Si no (validación,
        catálogo caído antes de aplicar), libera el id para poder reenviarlo."""
        try:
            claim = self.db.get(MovementRequest, request_id)
            if claim is None:
                return
            applied = response.success or any(
                line.success for line in response.results or []
            )
            if applied:
                claim.response = response.model_dump_json()
                claim.movement_id = response.data.id if response.success else None
                self.db.add(claim)
            else:
                self.db.delete(claim)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("No se pudo guardar la respuesta de %s: %s", request_id, e)

    def _submit(self, movement: MovementCreate) -> ServiceResponse[MovementRecord]:
        logger.info(
            "Registrando movimiento %s con %d producto(s)",
            movement.type,
            len(movement.lines),
        )

        # Un lote vacío se rechaza antes de leer el catálogo
        snapshot = None
        if movement.lines:
            try:
                snapshot = self.catalog.read_snapshot(snapshot_product_ids(movement))
            except CatalogUnavailableError as e:
                return ServiceResponse.fail(
                    message=e.message,
                    errors=[e.message],
                    code=MovementErrorCode.CATALOG_UNAVAILABLE.value,
                )

        issues = validate_movement(movement, snapshot)
        if issues:
            logger.info("Movimiento rechazado: %d error(es) de validación", len(issues))
            return ServiceResponse.fail(
                message="El movimiento no es válido.",
                errors=[str(issue) for issue in issues],
                code=VALIDATION_ERROR,
                details=issues,
            )

        result = execute_movement(movement, self.catalog)
        if not result.success:
            return self._execution_failure(result)

        try:
            record = self._save_record(movement, result.lines)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Stock aplicado pero no se pudo guardar el movimiento: %s", e)
            return ServiceResponse.fail(
                message="El stock se actualizó pero no se pudo guardar el registro del movimiento.",
                errors=["Error de conexión con la base de datos"],
                code=MovementErrorCode.CATALOG_UNAVAILABLE.value,
                results=result.lines,
            )

        self._notify(record, result.lines)
        return ServiceResponse.ok(data=record, message="Movimiento registrado correctamente")

    def _execution_failure(self, result: ExecutionResult) -> ServiceResponse:
        if result.catalog_unavailable:
            code = MovementErrorCode.CATALOG_UNAVAILABLE.value
            message = "No se pudo acceder al catálogo de productos."
        else:
            code = EXECUTION_ERROR
            message = (
                f"{len(result.failed)} de {len(result.lines)} línea(s) no se pudieron aplicar."
            )
        return ServiceResponse.fail(
            message=message,
            errors=[
                f"{line.error.value}: {line.message}"
                for line in result.failed
                if line.error is not None
            ],
            code=code,
            results=result.lines,
        )

    def _save_record(
        self, movement: MovementCreate, results: List[LineResult]
    ) -> MovementRecord:
        now = datetime.now(timezone.utc)
        is_stock_in = movement.type == "stock_in"

        new_movement = Movement(
            type=movement.type,
            department=None if is_stock_in else movement.department,
            supplier=movement.supplier if is_stock_in else None,
            stock_manager=movement.stock_manager,
            notes=movement.notes,
            total_items=len(movement.lines),
            total_value=movement_total_value(movement),
            date=now.date(),
            timestamp=now,
        )
        self.db.add(new_movement)
        self.db.flush()

        lines = []
        for number, (line_data, applied) in enumerate(zip(movement.lines, results), 1):
            new_line = MovementLine(
                movement_id=new_movement.id,
                line_number=number,
                product_id=line_data.product_id,
                product_name=line_data.product_name or applied.product_name or "",
                quantity=line_data.quantity,
                unit=line_data.unit,
                unit_price=line_data.unit_price,
                old_quantity=applied.old_quantity,
                new_quantity=applied.new_quantity,
            )
            self.db.add(new_line)
            lines.append(new_line)

        self.db.commit()
        self.db.refresh(new_movement)
        logger.info("Movimiento %s guardado (%s)", new_movement.id, new_movement.type)
        return to_record(new_movement, lines)

    def _notify(self, record: MovementRecord, results: List[LineResult]) -> None:
        if self.notifier is None:
            return

        self.notifier.publish(
            build_movement_notification(
                movement_type=record.type,
                product_names=[line.product_name for line in record.lines],
                stock_manager=record.stock_manager,
                department=record.department,
                supplier=record.supplier,
                total_value=record.total_value,
                movement_id=record.id,
            )
        )
        if record.type == "distribution":
            self.notifier.notify_stock_levels(
                {
                    (line.product_name or line.product_id): line.new_quantity
                    for line in results
                    if line.new_quantity is not None
                }
            )
