# config/settings.py
"""
Configuración centralizada de la aplicación usando Pydantic Settings.
Las variables se cargan desde el archivo .env
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # Base de datos
    DATABASE_URL: str

    # CORS
    CORS_ALLOW_ORIGINS: List[str] = ["http://localhost:3000"]

    # Zona horaria de referencia (timestamps naive en esta zona)
    APP_TIMEZONE: str = "America/Mazatlan"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Celery / refresco programado
    REDIS_URL: str | None = None
    REFRESH_ENABLED: bool = True  # Master switch del refresco programado
    REFRESH_INTERVAL_MINUTES: int = 60

    # Snapshots de inventario proyectado
    SNAPSHOT_PROJECTABLE_STATES: List[str] = ["Growout"]  # Estados de bloque que generan inventario
    SNAPSHOT_WEEKLY_MORTALITY_RATE: float = 0.0  # Fracción de población perdida por semana
    SNAPSHOT_INSERT_BATCH_SIZE: int = 100
    SNAPSHOT_CLEANUP_KEEP_DAYS: int = 30
    SNAPSHOT_CLEANUP_PRESERVE_LATEST: bool = True  # Nunca borrar la única copia de una llave
    SNAPSHOT_STALE_WARNING_DAYS: int = 7

    # Modelo de crecimiento
    GROWTH_DEFAULT_WEIGHT_G: float = 1.0  # Peso cuando la genética no tiene curva

    class Config:
        env_file = ".env"
        case_sensitive = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Una tasa fuera de [0, 1) no tiene sentido; se recorta
        if self.SNAPSHOT_WEEKLY_MORTALITY_RATE < 0:
            self.SNAPSHOT_WEEKLY_MORTALITY_RATE = 0.0
        if self.SNAPSHOT_WEEKLY_MORTALITY_RATE >= 1:
            self.SNAPSHOT_WEEKLY_MORTALITY_RATE = 0.99


settings = Settings()
