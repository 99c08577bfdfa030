"""
Servicio de resolución de letras desde múltiples fuentes.

Proveedores en orden de prioridad:
- LRCLIB (primario): https://lrclib.net/api/search
- Proxy Kugou (opcional): solo si hay un endpoint configurado
- Archivo LRC local del track (opcional): solo si el track declara uno

Los proveedores se consultan en secuencia; el fallo de uno nunca
interrumpe la cadena. Incluye caché en memoria por sesión, que también
recuerda los "no encontrado" para no repetir búsquedas inútiles.
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import aiohttp

from .lrc_parser import LRCParser, LyricsDocument
from .settings import AppSettings

logger = logging.getLogger(__name__)


class ProviderUnavailable(Exception):
    """Fallo de red, HTTP o respuesta mal formada de un proveedor."""


class ConfigurationMissing(Exception):
    """El proveedor no tiene la configuración necesaria para consultarse."""


class PayloadKind(Enum):
    """Tipo de contenido devuelto por un proveedor."""

    SYNCED = "synced"
    PLAIN = "plain"
    EMPTY = "empty"


@dataclass(frozen=True)
class LyricsPayload:
    """Respuesta de un proveedor, clasificada una sola vez."""

    kind: PayloadKind
    text: str = ""
    plain: str = ""  # Texto plano provisto junto a la letra sincronizada

    @classmethod
    def synced(cls, text: str, plain: str = "") -> "LyricsPayload":
        return cls(PayloadKind.SYNCED, text=text, plain=plain)

    @classmethod
    def plain_only(cls, text: str) -> "LyricsPayload":
        return cls(PayloadKind.PLAIN, text=text)

    @classmethod
    def empty(cls) -> "LyricsPayload":
        return cls(PayloadKind.EMPTY)


@dataclass
class ResolvedLyrics:
    """Resultado de una resolución exitosa."""

    document: Optional[LyricsDocument]
    source_name: str


class _NotFound:
    """Centinela para resultados "no encontrado" guardados en caché."""

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()

CacheValue = Union[ResolvedLyrics, _NotFound]


class LyricsCache:
    """Caché de letras en memoria, válido durante la sesión."""

    def __init__(self):
        self._entries: dict[str, CacheValue] = {}

    @staticmethod
    def make_key(artist: str, title: str) -> str:
        """Genera la clave normalizada artista|título."""
        return f"{(artist or '').strip().lower()}|{(title or '').strip().lower()}"

    def get(self, artist: str, title: str) -> Optional[CacheValue]:
        """
        Busca una entrada en el caché.

        Returns:
            ResolvedLyrics, NOT_FOUND si se guardó un fallo, o None si no hay entrada.
        """
        return self._entries.get(self.make_key(artist, title))

    def put(self, artist: str, title: str, result: Optional[ResolvedLyrics]) -> None:
        """Guarda un resultado; None se guarda como NOT_FOUND."""
        self._entries[self.make_key(artist, title)] = (
            result if result is not None else NOT_FOUND
        )

    def clear(self) -> int:
        """
        Limpia todo el caché.

        Returns:
            Número de entradas eliminadas.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Caché limpiado: {count} entradas eliminadas")
        return count

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class LyricsProvider:
    """
    Base de los proveedores de letras.

    Cada proveedor expone fetch(), que devuelve un LyricsPayload o lanza
    ProviderUnavailable, y check_configured(), que lanza
    ConfigurationMissing si el proveedor no debe consultarse.
    """

    name = "base"

    def __init__(self, session: aiohttp.ClientSession, timeout_s: float = 10):
        self.session = session
        self.timeout_s = timeout_s

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout_s)

    def check_configured(self, lyrics_asset: Optional[str] = None) -> None:
        """Por defecto un proveedor siempre está configurado."""

    async def fetch(
        self, title: str, artist: str, lyrics_asset: Optional[str] = None
    ) -> LyricsPayload:
        raise NotImplementedError

    async def _get_json(self, url: str, params: dict) -> object:
        """GET que devuelve el JSON o lanza ProviderUnavailable."""
        try:
            async with self.session.get(
                url, params=params, timeout=self._timeout()
            ) as response:
                if response.status != 200:
                    raise ProviderUnavailable(f"{url} error: {response.status}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ProviderUnavailable(f"{url} exception: {e}") from e


class LRCLIBProvider(LyricsProvider):
    """
    Proveedor de letras desde LRCLIB.

    API: https://lrclib.net/api
    - Sin autenticación requerida
    - Soporta letras sincronizadas y planas
    """

    name = "LRCLib"

    SEARCH_URL = "https://lrclib.net/api/search"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        search_url: str = SEARCH_URL,
        enabled: bool = True,
        timeout_s: float = 10,
    ):
        super().__init__(session, timeout_s)
        self.search_url = search_url
        self.enabled = enabled

    def check_configured(self, lyrics_asset: Optional[str] = None) -> None:
        if not self.enabled or not self.search_url:
            raise ConfigurationMissing("LRCLib deshabilitado")

    async def fetch(
        self, title: str, artist: str, lyrics_asset: Optional[str] = None
    ) -> LyricsPayload:
        """
        Busca letras en LRCLIB y usa el primer resultado.

        Args:
            title: Título de la canción
            artist: Nombre del artista

        Returns:
            LyricsPayload sincronizado, plano o vacío.
        """
        query = f"{title} {artist}".strip()
        results = await self._get_json(self.search_url, {"q": query})

        if not isinstance(results, list):
            raise ProviderUnavailable("LRCLib: respuesta inesperada")
        if not results:
            return LyricsPayload.empty()

        track = results[0]
        if not isinstance(track, dict):
            raise ProviderUnavailable("LRCLib: resultado mal formado")

        return self._parse_response(track)

    @staticmethod
    def _parse_response(data: dict) -> LyricsPayload:
        """Clasifica la respuesta de LRCLIB (preferir sincronizadas)."""
        synced_lyrics = data.get("syncedLyrics") or ""
        plain_lyrics = data.get("plainLyrics") or ""

        if synced_lyrics.strip():
            plain = plain_lyrics or LRCParser.strip_time_tags(synced_lyrics)
            return LyricsPayload.synced(synced_lyrics, plain)
        if plain_lyrics.strip():
            return LyricsPayload.plain_only(plain_lyrics)
        return LyricsPayload.empty()


class KugouProxyProvider(LyricsProvider):
    """
    Proveedor de letras a través de un proxy de Kugou.

    Protocolo en dos pasos:
    1. GET <proxy>/search?q=...          -> {"candidates": [{id, accesskey, ...}]}
    2. GET <proxy>/download?id=&accesskey= -> {"status": 1, "content": <base64 LRC>}
    """

    name = "Kugou"

    MAX_CANDIDATES = 3

    def __init__(
        self, session: aiohttp.ClientSession, proxy_url: str = "", timeout_s: float = 10
    ):
        super().__init__(session, timeout_s)
        self.proxy_url = (proxy_url or "").rstrip("/")

    def check_configured(self, lyrics_asset: Optional[str] = None) -> None:
        if not self.proxy_url:
            raise ConfigurationMissing("Proxy Kugou no configurado")

    async def fetch(
        self, title: str, artist: str, lyrics_asset: Optional[str] = None
    ) -> LyricsPayload:
        query = f"{title} {artist}".strip()
        result = await self._get_json(f"{self.proxy_url}/search", {"q": query})

        if not isinstance(result, dict):
            raise ProviderUnavailable("Kugou: respuesta de búsqueda inesperada")

        candidates = result.get("candidates") or []
        for candidate in candidates[: self.MAX_CANDIDATES]:
            if not isinstance(candidate, dict):
                continue
            candidate_id = candidate.get("id")
            accesskey = candidate.get("accesskey")
            if not candidate_id or not accesskey:
                continue

            try:
                content = await self._download(candidate_id, accesskey)
            except ProviderUnavailable as e:
                logger.warning(f"Kugou: descarga fallida para el candidato {candidate_id}: {e}")
                continue

            if content.strip():
                return LyricsPayload.synced(content)

        return LyricsPayload.empty()

    async def _download(self, candidate_id, accesskey: str) -> str:
        """Descarga y decodifica la letra de un candidato."""
        data = await self._get_json(
            f"{self.proxy_url}/download",
            {"id": str(candidate_id), "accesskey": accesskey},
        )
        if not isinstance(data, dict) or data.get("status") != 1:
            return ""
        return self.decode_content(data.get("content") or "")

    @staticmethod
    def decode_content(content: str) -> str:
        """Decodifica base64; si no es base64 válido se usa tal cual."""
        try:
            return base64.b64decode(content, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return content


class LocalFileProvider(LyricsProvider):
    """
    Proveedor de respaldo: archivo LRC declarado por el track actual.

    Acepta una URL http(s) o una ruta relativa al directorio de datos.
    """

    name = "Local"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        data_dir: Optional[Path] = None,
        timeout_s: float = 10,
    ):
        super().__init__(session, timeout_s)
        self.data_dir = data_dir or Path.cwd()

    def check_configured(self, lyrics_asset: Optional[str] = None) -> None:
        if not lyrics_asset:
            raise ConfigurationMissing("El track no declara archivo LRC local")

    async def fetch(
        self, title: str, artist: str, lyrics_asset: Optional[str] = None
    ) -> LyricsPayload:
        if lyrics_asset.startswith(("http://", "https://")):
            content = await self._fetch_remote(lyrics_asset)
        else:
            content = await self._read_file(lyrics_asset)

        if not content.strip():
            return LyricsPayload.empty()
        return LyricsPayload.synced(content)

    async def _fetch_remote(self, url: str) -> str:
        try:
            async with self.session.get(url, timeout=self._timeout()) as response:
                if response.status != 200:
                    raise ProviderUnavailable(
                        f"No se pudo cargar el LRC local: {response.status}"
                    )
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderUnavailable(f"No se pudo cargar el LRC local: {e}") from e

    async def _read_file(self, asset: str) -> str:
        path = Path(asset)
        if not path.is_absolute():
            path = self.data_dir / path
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ProviderUnavailable(f"No se pudo leer {path}: {e}") from e


class ProviderChain:
    """
    Cadena de proveedores consultados estrictamente en orden.

    El primer proveedor con letras gana; no se mezclan resultados.
    """

    def __init__(self, providers: list[LyricsProvider]):
        self.providers = list(providers)
        self.current_provider: Optional[str] = None

    async def resolve(
        self, title: str, artist: str, lyrics_asset: Optional[str] = None
    ) -> Optional[ResolvedLyrics]:
        """
        Resuelve letras para una canción.

        Args:
            title: Título de la canción
            artist: Nombre del artista
            lyrics_asset: Archivo LRC declarado por el track (opcional)

        Returns:
            ResolvedLyrics si algún proveedor tuvo éxito, None si no.
        """
        for provider in self.providers:
            try:
                provider.check_configured(lyrics_asset)
            except ConfigurationMissing as e:
                logger.debug(f"{provider.name} omitido: {e}")
                continue

            try:
                logger.debug(f"Buscando en {provider.name}: {artist} - {title}")
                payload = await provider.fetch(title, artist, lyrics_asset)
            except ProviderUnavailable as e:
                logger.warning(f"{provider.name} no disponible: {e}")
                continue
            except Exception as e:
                logger.warning(f"Error en proveedor {provider.name}: {e}")
                continue

            document = self._to_document(payload)
            if document is None:
                logger.debug(f"{provider.name}: sin resultados")
                continue

            self.current_provider = provider.name
            logger.info(
                f"Letras encontradas en {provider.name} para: {artist} - {title}"
            )
            return ResolvedLyrics(document=document, source_name=provider.name)

        logger.info(f"No se encontraron letras para: {artist} - {title}")
        return None

    @staticmethod
    def _to_document(payload: LyricsPayload) -> Optional[LyricsDocument]:
        """Convierte un payload en documento, o None si no sirve."""
        if payload.kind == PayloadKind.SYNCED:
            document = LRCParser.parse(payload.text)
            if payload.plain.strip():
                document.plain_text = payload.plain.strip()
            if document.lines or document.plain_text:
                return document
            return None

        if payload.kind == PayloadKind.PLAIN and payload.text.strip():
            return LyricsDocument(plain_text=payload.text.strip())

        return None


class LyricsService:
    """
    Servicio principal de obtención de letras.

    Objeto de contexto de la sesión: posee la sesión HTTP, la cadena de
    proveedores y el caché. Se crea una vez y se inyecta en la app.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        providers: Optional[list[LyricsProvider]] = None,
    ):
        """
        Inicializa el servicio de letras.

        Args:
            settings: Configuración de la app (endpoints, timeouts).
            session: Sesión HTTP compartida; si falta se crea en initialize().
            providers: Proveedores explícitos; si faltan se construyen desde settings.
        """
        self.settings = settings or AppSettings()
        self.cache = LyricsCache()
        self._session = session
        self._owns_session = session is None
        self._chain: Optional[ProviderChain] = (
            ProviderChain(providers) if providers is not None else None
        )

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._session

    async def initialize(self) -> None:
        """Inicializa la sesión HTTP y los proveedores."""
        # La sesión propia solo la usan los proveedores construidos aquí
        if self._chain is None:
            if self._session is None:
                self._session = aiohttp.ClientSession()
            self._chain = ProviderChain(self._build_providers())

        logger.info(
            "LyricsService inicializado con proveedores: "
            + ", ".join(p.name for p in self._chain.providers)
        )

    def _build_providers(self) -> list[LyricsProvider]:
        timeout_s = self.settings.http_timeout_s
        return [
            LRCLIBProvider(
                self._session,
                search_url=self.settings.lrclib_search_url,
                enabled=self.settings.lrclib_enabled,
                timeout_s=timeout_s,
            ),
            KugouProxyProvider(
                self._session, proxy_url=self.settings.kugou_proxy, timeout_s=timeout_s
            ),
            LocalFileProvider(
                self._session,
                data_dir=Path(self.settings.data_dir),
                timeout_s=timeout_s,
            ),
        ]

    async def close(self) -> None:
        """Cierra la sesión HTTP si fue creada por el servicio."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def get_or_resolve(
        self, title: str, artist: str, lyrics_asset: Optional[str] = None
    ) -> Optional[ResolvedLyrics]:
        """
        Devuelve letras desde el caché o las resuelve con la cadena.

        Los "no encontrado" también se guardan en caché.

        Args:
            title: Título de la canción
            artist: Nombre del artista
            lyrics_asset: Archivo LRC declarado por el track (opcional)

        Returns:
            ResolvedLyrics si se encontró, None si no.
        """
        if self._chain is None:
            raise RuntimeError("LyricsService no inicializado")

        cached = self.cache.get(artist, title)
        if cached is not None:
            logger.debug(f"Cache hit: {artist} - {title}")
            return None if cached is NOT_FOUND else cached

        result = await self._chain.resolve(title, artist, lyrics_asset)
        self.cache.put(artist, title, result)
        return result

    def clear_cache(self) -> int:
        return self.cache.clear()

    def provider_info(self) -> dict:
        """Proveedor usado en la última resolución y tamaño del caché."""
        return {
            "current": self._chain.current_provider if self._chain else None,
            "cache_size": self.cache.size(),
        }
