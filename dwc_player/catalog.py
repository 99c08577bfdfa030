"""
Catálogo de música del artista: tracks y playlists.

Se carga desde el proxy de contenido (o el JSON local) y permite
búsquedas locales por título, artista o álbum.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .content_client import ContentClient

logger = logging.getLogger(__name__)


@dataclass
class Track:
    """Información de una canción del catálogo."""

    id: str
    title: str
    artist: str
    album: str = ""
    duration: str = ""
    audio_url: str = ""
    cover_url: str = ""
    lrc_file: Optional[str] = None  # LRC local de respaldo
    preview_url: Optional[str] = None
    preview_only: bool = False

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"

    def matches(self, other: Optional["Track"]) -> bool:
        """Compara si dos Track son la misma canción."""
        if other is None:
            return False
        return (
            self.title.lower() == other.title.lower()
            and self.artist.lower() == other.artist.lower()
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """Crea un Track desde el JSON del contenido (claves camelCase)."""
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            artist=data.get("artist", ""),
            album=data.get("album") or "",
            duration=data.get("duration") or "",
            audio_url=data.get("audioUrl") or "",
            cover_url=data.get("coverUrl") or data.get("imageUrl") or "",
            lrc_file=data.get("lrcFile") or None,
            preview_url=data.get("previewUrl") or None,
            preview_only=bool(data.get("previewOnly", False)),
        )


@dataclass
class Playlist:
    id: str
    name: str
    track_ids: list[str] = field(default_factory=list)
    is_default: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Playlist":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            track_ids=[str(t) for t in data.get("tracks", [])],
            is_default=bool(data.get("isDefault", False)),
        )


class Catalog:
    """Tracks y playlists cargados, con búsqueda."""

    def __init__(self, content_client: ContentClient, search_logging_enabled: bool = False):
        self.content_client = content_client
        self.search_logging_enabled = search_logging_enabled
        self.tracks: list[Track] = []
        self.playlists: list[Playlist] = []
        self._log_tasks: set[asyncio.Task] = set()

    async def load(self) -> None:
        """Carga tracks y playlists; los registros inválidos se ignoran."""
        self.tracks = self._parse_list(await self.content_client.fetch("tracks"), Track)
        self.playlists = self._parse_list(
            await self.content_client.fetch("playlists"), Playlist
        )
        logger.info(
            f"Catálogo cargado: {len(self.tracks)} tracks, {len(self.playlists)} playlists"
        )

    @staticmethod
    def _parse_list(data: Any, model) -> list:
        if not isinstance(data, list):
            logger.warning(f"Contenido inesperado para {model.__name__}: {type(data).__name__}")
            return []

        result = []
        for item in data:
            if isinstance(item, dict):
                result.append(model.from_dict(item))
        return result

    def get_track(self, index: int) -> Optional[Track]:
        if 0 <= index < len(self.tracks):
            return self.tracks[index]
        return None

    def default_playlist(self) -> Optional[Playlist]:
        for playlist in self.playlists:
            if playlist.is_default:
                return playlist
        return None

    def tracks_for_playlist(self, playlist_id: Optional[str]) -> list[Track]:
        """Tracks de una playlist en el orden del catálogo; None = todos."""
        if not playlist_id:
            return list(self.tracks)

        for playlist in self.playlists:
            if playlist.id == playlist_id:
                ids = set(playlist.track_ids)
                return [t for t in self.tracks if t.id in ids]
        return []

    def search(self, query: str, log: bool = False) -> list[Track]:
        """
        Busca tracks por título, artista o álbum (sin distinguir mayúsculas).

        Args:
            query: Texto a buscar; vacío devuelve una lista vacía
            log: Si True y el registro está habilitado, envía la búsqueda al proxy

        Returns:
            Tracks que coinciden
        """
        query = (query or "").strip()
        if not query:
            return []

        if log and self.search_logging_enabled:
            self._schedule_log(query)

        needle = query.lower()
        results = [
            t
            for t in self.tracks
            if needle in t.title.lower()
            or needle in t.artist.lower()
            or needle in t.album.lower()
        ]
        logger.debug(f'Búsqueda "{query}": {len(results)} resultados')
        return results

    def _schedule_log(self, query: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(
                self.content_client.log_search(query)
            )
        except RuntimeError:
            logger.debug("Sin event loop activo, búsqueda no registrada")
            return
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)
