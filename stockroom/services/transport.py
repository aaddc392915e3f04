"""
Cliente HTTP del endpoint de movimientos, con reintentos.

Solo se reintentan los fallos transitorios: timeouts, peticiones sin
respuesta y errores del servidor marcados como timeout/"buffering"/
"Connection operation" (aunque lleguen con un código 4xx). Un 4xx de
validación no se reintenta. Tras agotar los intentos, el cliente devuelve
un `ServiceResponse` con `success=False`; nunca lanza.

Cada envío de movimiento lleva un `requestId`, igual en todos sus reintentos,
para que el servidor no aplique dos veces un lote que ya confirmó.
"""

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar
from uuid import uuid4
import requests
from stockroom.schemas.movement import MovementCreate
from stockroom.schemas.service import MovementErrorCode, ServiceResponse
from stockroom.utils.getenv import get_float_env, get_int_env

logger = logging.getLogger(__name__)

T = TypeVar("T")

API_URL = os.getenv("STOCKROOM_API_URL", "http://localhost:8000")
MAX_RETRIES = get_int_env("MOVEMENT_MAX_RETRIES", 3)
RETRY_BASE_DELAY = get_float_env("MOVEMENT_RETRY_BASE_DELAY", 2.0)  # segundos
DEFAULT_TIMEOUT = get_float_env("MOVEMENT_TIMEOUT", 30.0)
LARGE_BATCH_TIMEOUT = get_float_env("MOVEMENT_LARGE_BATCH_TIMEOUT", 60.0)
LARGE_BATCH_LINES = get_int_env("MOVEMENT_LARGE_BATCH_LINES", 5)

TRANSIENT_MARKERS = ("timeout", "buffering", "connection operation")


def timeout_for_batch(line_count: int) -> float:
    """Los lotes grandes tardan más en el servidor: más líneas, más margen."""
    return LARGE_BATCH_TIMEOUT if line_count > LARGE_BATCH_LINES else DEFAULT_TIMEOUT


def _error_body(response: Optional[requests.Response]) -> Dict[str, Any]:
    if response is None:
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _body_errors(body: Dict[str, Any]) -> List[str]:
    errors = body.get("errors") or []
    if not isinstance(errors, list):
        return [str(errors)]
    return [str(e) for e in errors]


def is_flagged_timeout(error: requests.HTTPError) -> bool:
    """Respuesta de error del servidor que en realidad es un timeout."""
    body = _error_body(error.response)
    texts = [str(error), str(body.get("message") or "")] + _body_errors(body)
    return any(marker in text.lower() for text in texts for marker in TRANSIENT_MARKERS)


def is_transient(error: Exception) -> bool:
    if isinstance(error, (requests.Timeout, requests.ConnectionError)):
        return True
    if isinstance(error, requests.HTTPError):
        return is_flagged_timeout(error)
    return False


def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Ejecuta `fn` hasta `max_retries` veces mientras falle de forma transitoria.

    Tras el intento fallido k (k = 0, 1, 2...) se espera `base_delay * 2**k`.
    Los errores no transitorios se propagan en el acto; agotados los intentos
    se propaga el último error.
    """
    last_error: Optional[Exception] = None

    for attempt in range(max_retries):
        try:
            return fn()
        except requests.RequestException as e:
            if not is_transient(e):
                raise
            last_error = e

        delay = base_delay * (2**attempt)
        logger.warning(
            "Intento %d/%d fallido (%s), esperando %.1fs",
            attempt + 1,
            max_retries,
            type(last_error).__name__,
            delay,
        )
        sleep(delay)

    if last_error is None:
        raise ValueError("max_retries debe ser al menos 1")
    raise last_error


class UnexpectedBodyError(requests.RequestException):
    """Respuesta 2xx cuyo JSON no es un objeto."""


class MovementClient:
    """Cliente del API de movimientos y del catálogo.

    Todos los métodos devuelven un `ServiceResponse`."""

    def __init__(
        self,
        base_url: str = API_URL,
        session: Optional[requests.Session] = None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries debe ser al menos 1")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, timeout: float, **kwargs) -> Any:
        def call():
            response = self.session.request(
                method,
                self._url(path),
                headers={"Accept": "application/json"},
                timeout=timeout,
                **kwargs,
            )
            response.raise_for_status()  # HTTPError para respuestas 4xx/5xx
            body = response.json()
            if not isinstance(body, dict):
                raise UnexpectedBodyError(
                    f"Respuesta inesperada del servidor: {type(body).__name__}",
                    response=response,
                )
            return body

        return retry_with_backoff(
            call,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self.sleep,
        )

    def _failure(self, error: Exception, action: str) -> ServiceResponse:
        if isinstance(error, requests.Timeout):
            return ServiceResponse.fail(
                message="timeout",
                errors=["Request timeout"],
                code=MovementErrorCode.TIMEOUT.value,
            )
        if isinstance(error, requests.ConnectionError):
            return ServiceResponse.fail(
                message="network error",
                errors=["No response from server. Please check your internet connection."],
                code=MovementErrorCode.NETWORK_ERROR.value,
            )
        if isinstance(error, requests.HTTPError):
            if is_flagged_timeout(error):
                return ServiceResponse.fail(
                    message="timeout",
                    errors=["Database timeout - try adding fewer products at once"],
                    code=MovementErrorCode.TIMEOUT.value,
                )
            body = _error_body(error.response)
            status_code = error.response.status_code if error.response is not None else None
            return ServiceResponse.fail(
                message=body.get("message") or f"Server error: {status_code}",
                errors=_body_errors(body) or [f"Status: {status_code}"],
                code=body.get("code"),
            )
        return ServiceResponse.fail(message=f"Failed to {action}", errors=[str(error)])

    def submit_movement(self, movement: MovementCreate) -> ServiceResponse:
        line_count = len(movement.lines)
        # El mismo requestId en todos los reintentos: el servidor no aplica dos veces
        payload = movement.model_dump(mode="json", by_alias=True)
        payload["requestId"] = movement.request_id or uuid4().hex
        logger.info(
            "Enviando movimiento %s con %d producto(s)", payload["requestId"], line_count
        )
        try:
            body = self._request(
                "POST",
                "/movimientos/",
                timeout=timeout_for_batch(line_count),
                json=payload,
            )
        except requests.RequestException as e:
            logger.error("Error enviando el movimiento: %s", e)
            return self._failure(e, "create stock movement")

        return ServiceResponse(
            success=True, data=body.get("data"), message=body.get("message")
        )

    def read_catalog_snapshot(self, product_ids: List[str]) -> ServiceResponse:
        try:
            body = self._request(
                "POST",
                "/productos/snapshot",
                timeout=DEFAULT_TIMEOUT,
                json={"productIds": list(product_ids)},
            )
        except requests.RequestException as e:
            logger.error("Error leyendo el stock: %s", e)
            return self._failure(e, "read catalog snapshot")
        return ServiceResponse.ok(data=body.get("quantities", {}))

    def get_movement(self, movement_id: int) -> ServiceResponse:
        try:
            body = self._request(
                "GET", f"/movimientos/{movement_id}", timeout=DEFAULT_TIMEOUT
            )
        except requests.RequestException as e:
            return self._failure(e, "fetch movement")
        return ServiceResponse.ok(data=body)

    def get_movements(self, **filters: Any) -> ServiceResponse:
        params = {
            key: value
            for key, value in filters.items()
            if value is not None and value != "all"
        }
        try:
            body = self._request(
                "GET", "/movimientos/", timeout=DEFAULT_TIMEOUT, params=params
            )
        except requests.RequestException as e:
            return self._failure(e, "fetch movements")
        return ServiceResponse.ok(data=body.get("data") or [])
