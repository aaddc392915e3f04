"""
Servicio de notificaciones de movimientos.

No es un singleton: se crea en el arranque de la aplicación (`lifespan`),
se inicializa y se cierra de forma explícita, y se pasa a quien emite
eventos. Los suscriptores son funciones que reciben una `Notification`;
el WebSocket de movimientos es uno de ellos.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field
from stockroom.utils.getenv import get_int_env

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = get_int_env("LOW_STOCK_THRESHOLD", 5)

# Nombres de producto que se muestran antes de resumir con "and N more"
MAX_NAMES_IN_BODY = 3


class Notification(BaseModel):
    type: str
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[Notification], None]


def _names_summary(names: List[str]) -> str:
    shown = names[:MAX_NAMES_IN_BODY]
    summary = ", ".join(shown)
    remaining = len(names) - len(shown)
    if remaining > 0:
        summary += f" and {remaining} more"
    return summary


def build_movement_notification(
    movement_type: str,
    product_names: List[str],
    stock_manager: str,
    department: Optional[str] = None,
    supplier: Optional[str] = None,
    total_value: Optional[float] = None,
    movement_id: Optional[int] = None,
) -> Notification:
    """Título y texto del aviso de un movimiento completado."""
    count = len(product_names)
    plural = "s" if count != 1 else ""

    if movement_type == "stock_in":
        title = "Stock In Completed"
        if any(product_names):
            body = f"Added: {_names_summary(product_names)}"
        else:
            body = f"{count} product{plural} added"
        if supplier:
            body += f" from {supplier}"
        if total_value:
            body += f" • Total: ${total_value:.2f}"
    else:
        title = "Distribution Completed"
        if any(product_names):
            body = f"Distributed: {_names_summary(product_names)}"
        else:
            body = f"{count} product{plural} distributed"
        if department:
            body += f" to {department}"
        body += f" • By: {stock_manager}"

    return Notification(
        type="movement",
        title=title,
        body=body,
        data={
            "movementType": movement_type,
            "movementId": movement_id,
            "productCount": count,
            "productNames": product_names,
            "department": department,
            "supplier": supplier,
            "totalValue": total_value,
            "stockManager": stock_manager,
        },
    )


def build_stock_alert(
    product_name: str, quantity: int, threshold: int = LOW_STOCK_THRESHOLD
) -> Optional[Notification]:
    """Aviso de stock bajo o agotado; None si la cantidad supera el umbral."""
    if quantity <= 0:
        return Notification(
            type="out_of_stock",
            title="Out of Stock",
            body=f"{product_name} is out of stock! Please restock immediately.",
            data={"productName": product_name},
        )
    if quantity <= threshold:
        return Notification(
            type="low_stock",
            title="Low Stock Alert",
            body=(
                f"{product_name} is running low! Current stock: {quantity} "
                f"(Threshold: {threshold})"
            ),
            data={
                "productName": product_name,
                "currentStock": quantity,
                "threshold": threshold,
            },
        )
    return None


class NotificationService:
    def __init__(self, low_stock_threshold: int = LOW_STOCK_THRESHOLD):
        self.low_stock_threshold = low_stock_threshold
        self.initialized = False
        self.history: List[Notification] = []
        self._subscribers: List[Subscriber] = []

    def initialize(self) -> None:
        if self.initialized:
            return
        self.initialized = True
        logger.info("Servicio de notificaciones iniciado")

    def shutdown(self) -> None:
        self._subscribers.clear()
        self.initialized = False
        logger.info("Servicio de notificaciones detenido")

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, notification: Notification) -> None:
        """Entrega el aviso a todos los suscriptores.
        Un suscriptor que falla no afecta a los demás ni al movimiento."""
        if not self.initialized:
            logger.warning(
                "Notificación descartada, servicio no iniciado: %s", notification.title
            )
            return

        self.history.append(notification)
        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception as e:
                logger.error("Error al emitir la notificación '%s': %s", notification.title, e)

    def notify_stock_levels(self, levels: Dict[str, int]) -> None:
        """Publica avisos de stock bajo/agotado. `levels` es {nombre: cantidad}."""
        for product_name, quantity in levels.items():
            alert = build_stock_alert(product_name, quantity, self.low_stock_threshold)
            if alert is not None:
                self.publish(alert)
