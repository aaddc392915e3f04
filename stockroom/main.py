import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware  # CORS
from stockroom.models.database import create_db_and_tables
from stockroom.routers import departments, movements, products
from stockroom.routers.websocket import manager, router as websocket_router
from stockroom.services.notifications import NotificationService
from stockroom.utils.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


# Crear las tablas y el servicio de notificaciones al iniciar la aplicación
@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()

    notifier = NotificationService()
    notifier.initialize()
    notifier.subscribe(manager.send_notification)
    app.state.notifier = notifier
    logger.info("Aplicación iniciada")

    yield

    notifier.shutdown()


app = FastAPI(title="Stockroom", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:8081").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # El alta de movimientos responde siempre con ServiceResponse
    if request.method == "POST" and request.url.path.rstrip("/") == movements.router.prefix:
        return movements.invalid_request_response(exc)
    return await request_validation_exception_handler(request, exc)


# Incluir routers
app.include_router(products.router)
app.include_router(movements.router)
app.include_router(departments.router)
# Websocket
app.include_router(websocket_router)


@app.get("/")
def read_root():
    return {"message": "API funcionando correctamente"}
