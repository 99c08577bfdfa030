"""
DWC Player - Aplicación principal

Reproductor de la música del artista con letras sincronizadas.
Carga el catálogo desde el proxy de contenido (o JSON local), busca
letras en la cadena de proveedores y las sincroniza con el audio.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication
from PyQt6.QtCore import QTimer
import qasync

from .catalog import Catalog, Track
from .content_client import ContentClient
from .lyrics_service import LyricsService
from .player import AudioPlayer, PlayerStatus
from .settings import AppSettings, SettingsManager
from .sync_engine import QtScheduler, SyncEngine
from .ui.player_window import PlayerWindow
from .ui.tray import TrayIcon

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class DWCPlayerApp:
    """
    Aplicación principal que orquesta todos los componentes.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or AppSettings()

        # Componentes
        self.lyrics_service: Optional[LyricsService] = None
        self.content_client: Optional[ContentClient] = None
        self.catalog: Optional[Catalog] = None
        self.player: Optional[AudioPlayer] = None
        self.sync_engine: Optional[SyncEngine] = None
        self.window: Optional[PlayerWindow] = None
        self.tray: Optional[TrayIcon] = None

        # Estado
        self._current_track: Optional[Track] = None
        self._current_index: int = -1
        self._visible: list[tuple[int, Track]] = []
        self._lyrics_task: Optional[asyncio.Task] = None
        self._running: bool = False

        # Qt App
        self.app: Optional[QApplication] = None

    async def initialize(self) -> bool:
        """
        Inicializa todos los componentes.

        Returns:
            True si la inicialización fue exitosa.
        """
        logger.info("Inicializando DWC Player...")
        data_dir = Path(self.settings.data_dir)

        try:
            # 1. Servicio de letras (posee la sesión HTTP compartida)
            logger.info("Inicializando servicio de letras...")
            self.lyrics_service = LyricsService(self.settings)
            await self.lyrics_service.initialize()

            # 2. Contenido y catálogo
            logger.info("Cargando catálogo...")
            self.content_client = ContentClient(
                self.lyrics_service.session,
                base_url=self.settings.content_proxy,
                token=self.settings.content_token,
                data_dir=data_dir,
                use_live_data=self.settings.use_live_data,
                timeout_s=self.settings.http_timeout_s,
            )
            self.catalog = Catalog(
                self.content_client,
                search_logging_enabled=self.settings.search_logging_enabled,
            )
            await self.catalog.load()

            # 3. Reproductor y motor de sincronización
            logger.info("Inicializando reproductor...")
            self.player = AudioPlayer(data_dir=data_dir, volume=self.settings.default_volume)
            self.sync_engine = SyncEngine(
                self.player,
                QtScheduler(),
                typewriter_enabled=self.settings.typewriter_enabled,
                word_delay_ms=self.settings.typewriter_word_delay_ms,
                frame_interval_ms=self.settings.frame_interval_ms,
            )

            # 4. UI
            logger.info("Inicializando interfaz de usuario...")
            self.window = PlayerWindow(self.settings.window_width, self.settings.window_height)
            self.tray = TrayIcon()
            self._connect_signals()

            default = self.catalog.default_playlist()
            self.window.set_playlists(self.catalog.playlists, default.id if default else "")
            self._show_playlist(self.window.current_playlist_id())

            logger.info("✓ Inicialización completa")
            return True

        except Exception as e:
            logger.error(f"Error durante la inicialización: {e}")
            return False

    def _connect_signals(self) -> None:
        view = self.window.lyrics_view

        # Reproductor
        self.player.status_changed.connect(self._on_status_changed)
        self.player.track_changed.connect(self._on_track_changed)
        self.player.position_changed.connect(self.window.set_position)
        self.player.duration_changed.connect(self.window.set_duration)
        self.player.ended.connect(self._on_track_ended)

        # Motor de sincronización -> vista de letras
        self.sync_engine.on_line_changed(view.update_sync)
        self.sync_engine.on_reveal_started(view.start_reveal)
        self.sync_engine.on_word_revealed(view.reveal_word)
        view.line_clicked.connect(self.sync_engine.seek_to_line)

        # Ventana
        self.window.track_selected.connect(lambda idx: self._play_index(idx))
        self.window.play_pause_clicked.connect(self._toggle_play_pause)
        self.window.previous_clicked.connect(lambda: self._step(-1))
        self.window.next_clicked.connect(lambda: self._step(1))
        self.window.seek_requested.connect(lambda ms: self.player.seek(ms / 1000.0))
        self.window.search_requested.connect(self._on_search)
        self.window.search_cleared.connect(
            lambda: self._show_playlist(self.window.current_playlist_id())
        )
        self.window.playlist_selected.connect(self._show_playlist)

        # Tray
        self.tray.toggle_window.connect(self._toggle_window)
        self.tray.play_pause.connect(self._toggle_play_pause)
        self.tray.next_track.connect(lambda: self._step(1))
        self.tray.clear_cache.connect(self._clear_lyrics_cache)
        self.tray.quit_app.connect(self._quit)

    # --- Lista de tracks ---

    def _show_tracks(self, tracks: list[Track]) -> None:
        positions = {id(t): i for i, t in enumerate(self.catalog.tracks)}
        self._visible = [(positions[id(t)], t) for t in tracks if id(t) in positions]
        self.window.set_tracks(self._visible, self._current_index)

    def _show_playlist(self, playlist_id: str) -> None:
        self._show_tracks(self.catalog.tracks_for_playlist(playlist_id or None))

    def _on_search(self, query: str) -> None:
        if not query:
            self._show_playlist(self.window.current_playlist_id())
            return
        self._show_tracks(self.catalog.search(query, log=True))

    # --- Reproducción ---

    def _play_index(self, catalog_index: int, autoplay: bool = True) -> None:
        track = self.catalog.get_track(catalog_index)
        if track is None:
            return
        self._current_index = catalog_index
        self.player.load(track, autoplay=autoplay)

    def _step(self, delta: int) -> None:
        """Avanza o retrocede dentro de la lista visible."""
        if not self._visible:
            return

        indices = [idx for idx, _ in self._visible]
        if self._current_index in indices:
            pos = (indices.index(self._current_index) + delta) % len(indices)
        else:
            pos = 0
        self._play_index(indices[pos])

    def _toggle_play_pause(self) -> None:
        if self.player.track is None:
            self._step(0)
            return
        self.player.toggle_play_pause()

    def _on_status_changed(self, status: PlayerStatus) -> None:
        playing = status == PlayerStatus.PLAYING
        self.window.set_playing(playing)
        self.tray.set_playing(playing)

        # Pausa y fin detienen el loop; al reanudar se reinicia
        if playing:
            self.sync_engine.start()
        else:
            self.sync_engine.stop()

    def _on_track_ended(self) -> None:
        self.sync_engine.stop()
        self._step(1)

    # --- Letras ---

    def _on_track_changed(self, track: Optional[Track]) -> None:
        """Callback cuando cambia la canción."""
        self._current_track = track

        # Cancelar la búsqueda anterior y limpiar sus letras
        if self._lyrics_task is not None and not self._lyrics_task.done():
            self._lyrics_task.cancel()
        self._lyrics_task = None
        self.sync_engine.set_document(None)

        if track is None:
            self.window.set_track_info(None)
            self.tray.clear_track_info()
            return

        logger.info(f"Nueva canción: {track}")
        self.window.set_track_info(track)
        self.window.set_tracks(self._visible, self._current_index)
        self.tray.update_track_info(track.artist, track.title)
        self.window.lyrics_view.set_searching_lyrics()

        self._lyrics_task = asyncio.create_task(self._fetch_lyrics(track))

    async def _fetch_lyrics(self, track: Track) -> None:
        """Resuelve letras para un track y las muestra si sigue siendo el actual."""
        view = self.window.lyrics_view
        try:
            resolved = await self.lyrics_service.get_or_resolve(
                track.title, track.artist, lyrics_asset=track.lrc_file
            )

            if self._current_track is None or not self._current_track.matches(track):
                logger.debug("Track cambió durante búsqueda, descartando resultado")
                return

            if resolved is None:
                view.set_no_lyrics_available()
                self.tray.show_lyrics_not_found()
                return

            view.set_lyrics(resolved)
            self.tray.show_lyrics_found(resolved.source_name)
            self.sync_engine.set_document(resolved.document)
            if self.player.is_playing():
                self.sync_engine.start()

        except Exception as e:
            logger.error(f"Error buscando letras: {e}")
            view.set_no_lyrics_available()

    def _clear_lyrics_cache(self) -> None:
        removed = self.lyrics_service.clear_cache()
        logger.info(f"Caché de letras vaciado: {removed} entradas")
        self.tray.show_notification("Caché de letras", f"{removed} entradas eliminadas")

    # --- Ventana ---

    def _toggle_window(self) -> None:
        if self.window.isVisible():
            self.window.hide()
        else:
            self.window.show()
            self.window.raise_()
            self.window.activateWindow()

    def _quit(self) -> None:
        """Cierra la aplicación de forma segura."""
        logger.info("Cerrando aplicación...")
        self._running = False

        try:
            if self.sync_engine:
                self.sync_engine.stop()
            if self.player:
                self.player.stop()
            if self.window:
                self.window.hide()
            if self.tray:
                self.tray.hide()
        except Exception as e:
            logger.error(f"Error al limpiar recursos: {e}")

        if self.app:
            QTimer.singleShot(100, self.app.quit)

    async def run(self) -> None:
        """Ejecuta la aplicación principal."""
        self._running = True

        self.window.show()
        self.tray.show()

        try:
            # El loop de Qt maneja los eventos
            while self._running:
                await asyncio.sleep(0.1)
        finally:
            await self.cleanup()
            logger.info("Aplicación cerrada")

    async def cleanup(self) -> None:
        """Limpia recursos."""
        if self._lyrics_task is not None and not self._lyrics_task.done():
            self._lyrics_task.cancel()

        if self.sync_engine:
            self.sync_engine.stop()

        if self.lyrics_service:
            await self.lyrics_service.close()


def main():
    """Punto de entrada principal."""
    settings_manager = SettingsManager()
    settings = settings_manager.settings
    setup_logging(settings.log_level)
    if not settings_manager.path.exists():
        settings_manager.save()

    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)  # Mantener corriendo con el tray
    app.setApplicationName("DWC Player")

    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    player_app = DWCPlayerApp(settings)
    player_app.app = app

    async def run_app():
        if not await player_app.initialize():
            logger.error("Error inicializando la aplicación")
            await player_app.cleanup()
            app.quit()
            return

        await player_app.run()

    with loop:
        try:
            loop.run_until_complete(run_app())
        except KeyboardInterrupt:
            logger.info("Interrupción de teclado")
            loop.run_until_complete(player_app.cleanup())


if __name__ == "__main__":
    main()
