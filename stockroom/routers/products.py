import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from stockroom.dependencies import get_catalog
from stockroom.exceptions import CatalogUnavailableError
from stockroom.models.database import get_db
from stockroom.models.movement_line import MovementLine
from stockroom.models.product import Product
from stockroom.schemas.product import (
    PaginatedProductResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    SnapshotRequest,
    SnapshotResponse,
)
from stockroom.services.catalog import SqlProductCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/productos", tags=["Productos"])


def _db_error():
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Error de conexión con la base de datos",
    )


@router.get("/", response_model=PaginatedProductResponse)
def get_products(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None),
):
    """Lista todos los productos ordenados por nombre."""
    try:
        statement = select(Product)

        if search:
            # Filtra por nombre (mayúsculas o minúsculas)
            search_like = f"%{search.lower()}%"
            statement = statement.where(func.lower(Product.name).like(search_like))

        products = db.exec(
            statement.order_by(Product.name).limit(limit).offset(offset)
        ).all()

        # Conteo total SIN paginar
        total_records = (
            db.exec(select(func.count()).select_from(statement.subquery())).first() or 0
        )
    except SQLAlchemyError:
        raise _db_error()

    return {
        "data": products,
        "total": total_records,
        "limit": limit,
        "offset": offset,
    }


@router.get("/sin-stock", response_model=PaginatedProductResponse)
def get_out_of_stock_products(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """Productos agotados (cantidad 0)."""
    try:
        statement = select(Product).where(Product.quantity <= 0)
        products = db.exec(
            statement.order_by(Product.name).limit(limit).offset(offset)
        ).all()
        total_records = (
            db.exec(select(func.count()).select_from(statement.subquery())).first() or 0
        )
    except SQLAlchemyError:
        raise _db_error()

    return {
        "data": products,
        "total": total_records,
        "limit": limit,
        "offset": offset,
    }


@router.post("/snapshot", response_model=SnapshotResponse)
def read_catalog_snapshot(
    data: SnapshotRequest,
    catalog: SqlProductCatalog = Depends(get_catalog),
):
    """Cantidades actuales de los productos pedidos. Los que no existen no aparecen."""
    try:
        quantities = catalog.read_snapshot(data.product_ids)
    except CatalogUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        )
    return {"quantities": quantities}


@router.get("/{id}", response_model=ProductResponse)
def get_product(id: str, db: Session = Depends(get_db)):
    """Obtiene un producto específico por su ID."""
    try:
        product = db.get(Product, id)
    except SQLAlchemyError:
        raise _db_error()

    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return product


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(product_data: ProductCreate, db: Session = Depends(get_db)):
    """Crea un nuevo producto. El nombre no puede repetirse."""
    name = product_data.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El nombre del producto es obligatorio.",
        )

    # Verificar si el nombre ya existe
    try:
        existing_product = db.exec(select(Product).where(Product.name == name)).first()
    except SQLAlchemyError:
        raise _db_error()

    if existing_product:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'El producto "{name}" ya existe con ID: {existing_product.id}',
        )

    new_product = Product(
        name=name,
        quantity=product_data.quantity,
        unit=product_data.unit,
        unit_price=product_data.unit_price,
    )

    try:
        db.add(new_product)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Error de integridad en la base de datos. Verifica los datos enviados.",
        )
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error interno al crear el producto.",
        )
    db.refresh(new_product)

    logger.info("Producto creado: %s (%s)", new_product.name, new_product.id)
    return new_product


@router.put("/{id}", response_model=ProductResponse)
def update_product(id: str, product_data: ProductUpdate, db: Session = Depends(get_db)):
    """Actualiza nombre, unidad o precio. La cantidad solo cambia con movimientos."""
    product = db.get(Product, id)
    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")

    update_data = product_data.model_dump(exclude_unset=True)
    if "name" in update_data and update_data["name"] is not None:
        update_data["name"] = update_data["name"].strip()
        duplicate = db.exec(
            select(Product).where(Product.name == update_data["name"], Product.id != id)
        ).first()
        if duplicate:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Ya existe otro producto llamado "{update_data["name"]}".',
            )

    for key, value in update_data.items():
        if value is not None:
            setattr(product, key, value)
    product.updated_at = datetime.now(timezone.utc)

    try:
        db.add(product)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Error de integridad en la base de datos. Verifica los datos enviados.",
        )
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error interno al actualizar el producto.",
        )
    db.refresh(product)
    return product


@router.delete("/{id}", response_model=ProductResponse)
def delete_product(id: str, db: Session = Depends(get_db)):
    """Elimina un producto que no aparece en ningún movimiento."""
    product = db.get(Product, id)
    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")

    # Los registros de movimientos son inmutables: no se pueden dejar huérfanos
    used = db.exec(select(MovementLine).where(MovementLine.product_id == id)).first()
    if used:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No se puede eliminar el producto porque tiene movimientos asociados",
        )

    deleted = ProductResponse.model_validate(product)
    try:
        db.delete(product)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(500, detail="Error al eliminar el producto")

    logger.info("Producto eliminado: %s", id)
    return deleted
