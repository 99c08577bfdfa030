"""
Gestor de configuración persistente.

Carga y guarda configuración del usuario en JSON.
Provee valores por defecto y validación.
"""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Ruta por defecto del archivo de configuración
DEFAULT_SETTINGS_PATH = Path.home() / ".dwc-player" / "settings.json"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class AppSettings:
    """Configuración completa de la aplicación."""

    # --- Proveedores de letras ---
    lrclib_enabled: bool = True
    lrclib_search_url: str = "https://lrclib.net/api/search"
    kugou_proxy: str = ""  # Vacío = proveedor deshabilitado

    # --- Proxy de contenido ---
    content_proxy: str = ""
    content_token: str = ""  # Solo para uso de administración
    use_live_data: bool = False  # Si False se usa siempre el JSON local
    search_logging_enabled: bool = False

    # Directorio con tracks.json, playlists.json, audio y LRC locales
    data_dir: str = "data"

    # --- Letras ---
    typewriter_enabled: bool = True
    typewriter_word_delay_ms: int = 50
    frame_interval_ms: int = 16  # ~60 fps

    # --- Red ---
    http_timeout_s: int = 10

    # --- Reproductor ---
    default_volume: float = 0.8
    window_width: int = 900
    window_height: int = 640

    log_level: str = "INFO"

    def validate(self) -> None:
        """Valida y corrige valores fuera de rango."""
        self.typewriter_word_delay_ms = max(10, min(2000, self.typewriter_word_delay_ms))
        self.frame_interval_ms = max(8, min(250, self.frame_interval_ms))
        self.http_timeout_s = max(1, min(60, self.http_timeout_s))
        self.default_volume = max(0.0, min(1.0, self.default_volume))
        self.window_width = max(480, min(3840, self.window_width))
        self.window_height = max(360, min(2160, self.window_height))
        self.kugou_proxy = (self.kugou_proxy or "").strip().rstrip("/")
        self.content_proxy = (self.content_proxy or "").strip().rstrip("/")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            self.log_level = "INFO"


class SettingsManager:
    """
    Carga, guarda y provee acceso a la configuración de la app.

    Persiste en ~/.dwc-player/settings.json
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = path or DEFAULT_SETTINGS_PATH
        self._settings = AppSettings()
        self.load()

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Carga la configuración desde disco. Si no existe, usa defaults."""
        if not self._path.exists():
            logger.info("No se encontró archivo de configuración, usando valores por defecto")
            return

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            # Aplicar solo los campos conocidos
            for key, value in data.items():
                if hasattr(self._settings, key):
                    setattr(self._settings, key, value)
            self._settings.validate()
            logger.info(f"Configuración cargada desde {self._path}")
        except Exception as e:
            logger.warning(f"Error cargando configuración: {e}. Usando valores por defecto.")
            self._settings = AppSettings()

    def save(self) -> None:
        """Guarda la configuración actual en disco."""
        try:
            self._settings.validate()
            self._path.parent.mkdir(parents=True, exist_ok=True)
            data = asdict(self._settings)
            self._path.write_text(
                json.dumps(data, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            logger.debug(f"Configuración guardada en {self._path}")
        except Exception as e:
            logger.warning(f"Error guardando configuración: {e}")

