"""
Cliente del proxy de contenido (almacén KV de la web del artista).

Endpoints consumidos:
- GET  /api/content/{tipo}   -> JSON (objeto para profile, lista para el resto)
- POST /api/content/{tipo}   -> requiere X-Content-Token si el despliegue lo exige
- GET/POST /api/content/bulk -> todos los tipos en una llamada
- POST /api/search/log       -> {q, at}, sin esperar respuesta útil

Si el proxy no responde se usa el JSON local del directorio de datos.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

import aiohttp

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("profile", "tracks", "playlists", "gallery", "videos", "shows", "links")


class ContentError(Exception):
    """Error base del proxy de contenido."""


class ContentUnauthorized(ContentError):
    """El proxy rechazó el token (401)."""


class ContentWriteError(ContentError):
    """Fallo de escritura con código HTTP y cuerpo de la respuesta."""

    def __init__(self, status: int, body: str):
        super().__init__(f"Error {status} guardando contenido: {body}")
        self.status = status
        self.body = body


def empty_content(content_type: str) -> Any:
    """Valor vacío para un tipo: objeto para profile, lista para el resto."""
    return {} if content_type == "profile" else []


def _check_type(content_type: str) -> None:
    if content_type not in CONTENT_TYPES:
        raise ValueError(f"Tipo de contenido inválido: {content_type}")


class ContentClient:
    """Lectura/escritura de contenido con fallback a JSON local."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = "",
        token: str = "",
        data_dir: Optional[Path] = None,
        use_live_data: bool = True,
        timeout_s: float = 10,
    ):
        """
        Inicializa el cliente.

        Args:
            session: Sesión HTTP compartida
            base_url: URL del proxy; vacío = solo datos locales
            token: Token de escritura (X-Content-Token)
            data_dir: Directorio con los JSON locales
            use_live_data: Si False no se consulta el proxy para leer
            timeout_s: Timeout de cada petición
        """
        self.session = session
        self.base_url = (base_url or "").rstrip("/")
        self.token = token
        self.data_dir = data_dir or Path("data")
        self.use_live_data = use_live_data
        self.timeout_s = timeout_s

        # ETag y cuerpo de la última respuesta por endpoint
        self._etags: dict[str, tuple[str, Any]] = {}

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout_s)

    def _write_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["X-Content-Token"] = self.token
        return headers

    @property
    def live(self) -> bool:
        return bool(self.use_live_data and self.base_url)

    # --- Lectura ---

    async def fetch(self, content_type: str) -> Any:
        """
        Obtiene el contenido de un tipo.

        Intenta el proxy (si está habilitado) y si falla usa el JSON local.
        """
        _check_type(content_type)

        if self.live:
            try:
                data = await self._get_json(f"/api/content/{content_type}")
                logger.info(f"{content_type} cargado desde el proxy")
                return data
            except ContentError as e:
                logger.warning(
                    f"No se pudo cargar {content_type} desde el proxy, usando JSON local: {e}"
                )

        return await self._load_local(content_type)

    async def fetch_bulk(self) -> dict[str, Any]:
        """Obtiene todos los tipos; los que falten se completan con vacíos."""
        data: dict[str, Any] = {}

        if self.live:
            try:
                data = await self._get_json("/api/content/bulk")
                if not isinstance(data, dict):
                    raise ContentError("Respuesta bulk inesperada")
                return {t: data.get(t, empty_content(t)) for t in CONTENT_TYPES}
            except ContentError as e:
                logger.warning(f"No se pudo cargar bulk desde el proxy: {e}")

        for content_type in CONTENT_TYPES:
            data[content_type] = await self._load_local(content_type)
        return data

    async def _get_json(self, path: str) -> Any:
        headers = {"Accept": "application/json"}
        cached = self._etags.get(path)
        if cached:
            headers["If-None-Match"] = cached[0]

        try:
            async with self.session.get(
                f"{self.base_url}{path}", headers=headers, timeout=self._timeout()
            ) as response:
                if response.status == 304 and cached:
                    logger.debug(f"{path} sin cambios (ETag)")
                    return cached[1]
                if response.status != 200:
                    raise ContentError(f"{path} error: {response.status}")

                data = await response.json()
                etag = response.headers.get("ETag")
                if etag:
                    self._etags[path] = (etag, data)
                return data
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ContentError(f"{path} exception: {e}") from e

    async def _load_local(self, content_type: str) -> Any:
        path = self.data_dir / f"{content_type}.json"
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
            data = json.loads(content)
            logger.info(f"{content_type} cargado desde {path}")
            return data
        except (OSError, ValueError) as e:
            logger.error(f"Error cargando {path}: {e}")
            return empty_content(content_type)

    # --- Escritura ---

    async def save(self, content_type: str, payload: Any) -> str:
        """
        Guarda el contenido de un tipo en el proxy.

        Raises:
            ContentUnauthorized: Token ausente o incorrecto
            ContentWriteError: Cualquier otra respuesta no exitosa
        """
        _check_type(content_type)
        return await self._post(f"/api/content/{content_type}", payload)

    async def save_bulk(self, data: dict[str, Any]) -> str:
        """Guarda varios tipos a la vez (solo los tipos conocidos)."""
        payload = {t: data[t] for t in CONTENT_TYPES if t in data}
        return await self._post("/api/content/bulk", payload)

    async def _post(self, path: str, payload: Any) -> str:
        if not self.base_url:
            raise ContentError("Proxy de contenido no configurado")

        try:
            async with self.session.post(
                f"{self.base_url}{path}",
                data=json.dumps(payload),
                headers=self._write_headers(),
                timeout=self._timeout(),
            ) as response:
                body = await response.text()
                if response.status == 401:
                    raise ContentUnauthorized("Token de contenido inválido o ausente")
                if not 200 <= response.status < 300:
                    raise ContentWriteError(response.status, body)
                self._etags.pop(path, None)
                logger.info(f"Contenido guardado: {path}")
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ContentError(f"{path} exception: {e}") from e

    # --- Búsquedas ---

    async def log_search(self, query: str) -> None:
        """Registra una búsqueda. Los fallos se registran y se ignoran."""
        if not self.base_url:
            return

        payload = {"q": query, "at": int(time.time() * 1000)}
        try:
            async with self.session.post(
                f"{self.base_url}/api/search/log",
                data=json.dumps(payload),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout(),
            ) as response:
                if response.status != 200:
                    logger.warning(f"Log de búsqueda rechazado: {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Error registrando búsqueda: {e}")
