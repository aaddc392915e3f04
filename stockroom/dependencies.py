from fastapi import Depends, Request
from sqlmodel import Session
from stockroom.models.database import get_db
from stockroom.services.catalog import SqlProductCatalog
from stockroom.services.movements import StockMovementService
from stockroom.services.notifications import NotificationService


def get_notifier(request: Request) -> NotificationService:
    """Servicio de notificaciones creado en el arranque de la aplicación."""
    return request.app.state.notifier


def get_catalog(db: Session = Depends(get_db)) -> SqlProductCatalog:
    return SqlProductCatalog(db)


def get_movement_service(
    db: Session = Depends(get_db),
    catalog: SqlProductCatalog = Depends(get_catalog),
    notifier: NotificationService = Depends(get_notifier),
) -> StockMovementService:
    return StockMovementService(db, catalog, notifier)
