from datetime import date, datetime, time, timezone
from dateutil.relativedelta import relativedelta
from typing import Literal, Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session, func, select
from sqlalchemy.exc import SQLAlchemyError
from stockroom.dependencies import get_movement_service
from stockroom.models.database import get_db
from stockroom.models.movement import Movement
from stockroom.models.movement_line import MovementLine
from stockroom.schemas.movement import (
    DepartmentUsage,
    MovementCreate,
    MovementRecord,
    MovementStatistics,
    MovementSummary,
    MovementType,
    PaginatedMovementsResponse,
)
from stockroom.schemas.service import (
    VALIDATION_ERROR,
    MovementErrorCode,
    ServiceResponse,
    ValidationIssue,
)
from stockroom.services.movements import StockMovementService, load_record

router = APIRouter(prefix="/movimientos", tags=["Movimientos"])

# Código HTTP de cada tipo de fallo al registrar un movimiento
FAILURE_STATUS = {
    VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    MovementErrorCode.CATALOG_UNAVAILABLE.value: status.HTTP_503_SERVICE_UNAVAILABLE,
}

PERIODS = {
    "today": relativedelta(),
    "week": relativedelta(weeks=1),
    "month": relativedelta(months=1),
    "year": relativedelta(years=1),
}


def _db_error():
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Error de conexión con la base de datos",
    )


@router.get("/", response_model=PaginatedMovementsResponse)
def get_movements(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    type: Optional[MovementType] = Query(None),
    department: Optional[str] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
):
    """Lista los movimientos, del más reciente al más antiguo, con sus líneas."""
    try:
        statement = select(Movement)

        if type:
            statement = statement.where(Movement.type == type)

        if department:
            statement = statement.where(Movement.department == department)

        if fecha_desde:
            statement = statement.where(Movement.date >= fecha_desde)

        if fecha_hasta:
            statement = statement.where(Movement.date <= fecha_hasta)

        results = db.exec(
            statement.order_by(Movement.timestamp.desc(), Movement.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()

        total_records = (
            db.exec(select(func.count()).select_from(statement.subquery())).first() or 0
        )

        movements_response = [load_record(db, movement) for movement in results]
    except SQLAlchemyError:
        raise _db_error()

    return {
        "data": movements_response,
        "total": total_records,
        "limit": limit,
        "offset": offset,
    }


@router.get("/estadisticas", response_model=MovementStatistics)
def get_statistics(
    db: Session = Depends(get_db),
    period: Literal["today", "week", "month", "year"] = Query("month"),
):
    """Resumen de entradas y distribuciones del periodo (hoy, semana, mes o año)."""
    # Los movimientos se guardan en UTC
    today = datetime.now(timezone.utc).date()
    fecha_hasta = datetime.combine(today, time.max, tzinfo=timezone.utc)
    if period == "today":
        fecha_desde = datetime.combine(today, time.min, tzinfo=timezone.utc)
    else:
        fecha_desde = fecha_hasta - PERIODS[period]

    in_period = (Movement.timestamp >= fecha_desde, Movement.timestamp <= fecha_hasta)

    try:
        counts = dict(
            db.exec(
                select(Movement.type, func.count())
                .where(*in_period)
                .group_by(Movement.type)
            ).all()
        )

        quantities = dict(
            db.exec(
                select(Movement.type, func.sum(MovementLine.quantity))
                .join(MovementLine, MovementLine.movement_id == Movement.id)
                .where(*in_period)
                .group_by(Movement.type)
            ).all()
        )

        total_value_in = db.exec(
            select(func.sum(Movement.total_value)).where(
                Movement.type == "stock_in", *in_period
            )
        ).first()

        departments = db.exec(
            select(
                Movement.department,
                func.count(func.distinct(Movement.id)),
                func.sum(MovementLine.quantity),
            )
            .join(MovementLine, MovementLine.movement_id == Movement.id)
            .where(Movement.type == "distribution", *in_period)
            .group_by(Movement.department)
            .order_by(Movement.department)
        ).all()
    except SQLAlchemyError:
        raise _db_error()

    return MovementStatistics(
        period=period,
        date_from=fecha_desde,
        date_to=fecha_hasta,
        total_movements=sum(counts.values()),
        stock_in_count=counts.get("stock_in", 0),
        distribution_count=counts.get("distribution", 0),
        quantity_in=quantities.get("stock_in") or 0,
        quantity_out=quantities.get("distribution") or 0,
        total_value_in=round(total_value_in or 0, 2),
        by_department=[
            DepartmentUsage(
                department=department or "Sin departamento",
                movements=movements,
                quantity=quantity or 0,
            )
            for department, movements, quantity in departments
        ],
    )


@router.get("/resumen/tipo", response_model=List[MovementSummary])
def count_movements_by_type(db: Session = Depends(get_db)):
    try:
        resultados = db.exec(
            select(Movement.type, func.count()).group_by(Movement.type)
        ).all()
    except SQLAlchemyError:
        raise _db_error()

    conteo = {"stock_in": 0, "distribution": 0}
    for tipo, cantidad in resultados:
        if tipo in conteo:
            conteo[tipo] = cantidad

    return [
        {"type": "stock_in", "count": conteo["stock_in"]},
        {"type": "distribution", "count": conteo["distribution"]},
    ]


@router.get(
    "/departamento/{department_id}", response_model=PaginatedMovementsResponse
)
def get_department_movements(
    department_id: str,
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """Distribuciones enviadas a un departamento."""
    return get_movements(
        db=db,
        limit=limit,
        offset=offset,
        type="distribution",
        department=department_id,
        fecha_desde=None,
        fecha_hasta=None,
    )


@router.get("/{id}", response_model=MovementRecord)
def get_movement(id: int, db: Session = Depends(get_db)):
    """Obtiene un movimiento con sus líneas."""
    try:
        movement = db.get(Movement, id)
        if movement:
            record = load_record(db, movement)
    except SQLAlchemyError:
        raise _db_error()

    if not movement:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Movimiento no encontrado"
        )
    return record


@router.post(
    "/",
    response_model=ServiceResponse[MovementRecord],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Movimiento no válido"},
        409: {"description": "Alguna línea no se pudo aplicar"},
        503: {"description": "Catálogo no disponible"},
    },
)
def create_movement(
    movement_data: MovementCreate,
    service: StockMovementService = Depends(get_movement_service),
):
    """
    Registra un movimiento con todas sus líneas en una sola petición.

    - Si el movimiento no es válido no se toca el stock y se devuelven
      todos los errores a la vez.
    - Si alguna línea falla al aplicarse, el resto se aplica igualmente y la
      respuesta detalla el resultado de cada línea; no se guarda el registro.
    """
    result = service.submit_movement(movement_data)
    if result.success:
        return result
    return failure_response(result)


def failure_response(result: ServiceResponse) -> JSONResponse:
    return JSONResponse(
        status_code=FAILURE_STATUS.get(result.code, status.HTTP_409_CONFLICT),
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def invalid_request_response(error: RequestValidationError) -> JSONResponse:
    """Errores de esquema del cuerpo de `POST /movimientos/` con el mismo sobre
    que los de validación (400), en lugar del 422 de FastAPI.
    - Los errores dentro de `lines` se informan como `INVALID_LINE` de esa línea.
    - El resto, como `INVALID_FIELD`."""
    issues = []
    for e in error.errors():
        loc = [part for part in e.get("loc", ()) if part != "body"]
        field = ".".join(str(part) for part in loc) or "body"
        if len(loc) >= 2 and loc[0] == "lines" and isinstance(loc[1], int):
            number = loc[1] + 1
            issues.append(
                ValidationIssue(
                    code=MovementErrorCode.INVALID_LINE,
                    line=number,
                    message=f"La línea {number} no es válida ({field}): {e.get('msg')}.",
                )
            )
        else:
            issues.append(
                ValidationIssue(
                    code=MovementErrorCode.INVALID_FIELD,
                    message=f"Campo no válido ({field}): {e.get('msg')}.",
                )
            )

    return failure_response(
        ServiceResponse.fail(
            message="El movimiento no es válido.",
            errors=[str(issue) for issue in issues],
            code=VALIDATION_ERROR,
            details=issues,
        )
    )
