from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from stockroom.models.database import get_db
from stockroom.models.department import Department
from stockroom.models.movement import Movement
from stockroom.schemas.department import (
    DepartmentCreate,
    DepartmentExistsResponse,
    DepartmentResponse,
    DepartmentUpdate,
    PaginatedDepartmentResponse,
)
from stockroom.utils.validation import normalize_name, slugify

router = APIRouter(prefix="/departamentos", tags=["Departamentos"])


@router.get("/", response_model=PaginatedDepartmentResponse)
def get_departments(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
):
    """Lista los departamentos. `search` busca en el nombre y la descripción."""
    try:
        statement = select(Department)

        if search:
            search_like = f"%{search.lower()}%"
            statement = statement.where(
                func.lower(Department.name).like(search_like)
                | func.lower(Department.description).like(search_like)
            )

        if active is not None:
            statement = statement.where(Department.active == active)

        departments = db.exec(
            statement.order_by(Department.name).limit(limit).offset(offset)
        ).all()

        total_records = (
            db.exec(select(func.count()).select_from(statement.subquery())).first() or 0
        )
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    return {
        "data": departments,
        "total": total_records,
        "limit": limit,
        "offset": offset,
    }


@router.get("/existe", response_model=DepartmentExistsResponse)
def department_name_exists(nombre: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Comprueba si ya hay un departamento con ese nombre (sin distinguir mayúsculas)."""
    existing = db.exec(
        select(Department).where(
            func.lower(Department.name) == normalize_name(nombre).lower()
        )
    ).first()
    return {"exists": existing is not None}


@router.get("/{id}", response_model=DepartmentResponse)
def get_department(id: str, db: Session = Depends(get_db)):
    department = db.get(Department, id)
    if not department:
        raise HTTPException(404, detail="Departamento no encontrado")
    return department


@router.post("/", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
def create_department(data: DepartmentCreate, db: Session = Depends(get_db)):
    name = normalize_name(data.name)
    department_id = data.id or slugify(name)
    if not department_id:
        raise HTTPException(400, detail="No se pudo generar el id del departamento")

    if db.get(Department, department_id):
        raise HTTPException(400, detail=f"Ya existe el departamento '{department_id}'")

    department = Department(id=department_id, name=name, description=data.description)
    try:
        db.add(department)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Ya existe otro departamento con ese nombre")
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(500, detail="Error al crear el departamento")

    db.refresh(department)
    return department


@router.put("/{id}", response_model=DepartmentResponse)
def update_department(id: str, data: DepartmentUpdate, db: Session = Depends(get_db)):
    department = db.get(Department, id)
    if not department:
        raise HTTPException(404, detail="Departamento no encontrado")

    if data.name:
        department.name = normalize_name(data.name)
    if data.description is not None:
        department.description = data.description
    if data.active is not None:
        department.active = data.active

    try:
        db.add(department)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Ya existe otro departamento con ese nombre")
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(500, detail="Error al actualizar el departamento")

    db.refresh(department)
    return department


@router.delete("/{id}", response_model=DepartmentResponse)
def delete_department(id: str, db: Session = Depends(get_db)):
    department = db.get(Department, id)
    if not department:
        raise HTTPException(404, detail="Departamento no encontrado")

    # Validar que no haya movimientos asociados
    movimientos = db.exec(select(Movement).where(Movement.department == id)).first()
    if movimientos:
        raise HTTPException(
            400,
            detail="No se puede eliminar este departamento porque tiene movimientos asociados",
        )

    deleted = DepartmentResponse.model_validate(department)
    try:
        db.delete(department)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(500, detail="Error al eliminar el departamento")

    return deleted
