"""
Configuración del logging de la aplicación.

Cada módulo obtiene su logger con `logging.getLogger(__name__)`; aquí solo
se configura una vez el handler raíz, con el nivel tomado de `LOG_LEVEL`.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configura el logger raíz del paquete (idempotente)."""
    global _configured

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("stockroom")
    logger.setLevel(numeric_level)

    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        _configured = True
