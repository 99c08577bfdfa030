"""
Reproductor de audio basado en QMediaPlayer.

Es la única fuente de verdad del tiempo de reproducción: el motor de
sincronización lee la posición de aquí y nunca lleva un reloj propio.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject, QUrl, pyqtSignal
from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer

from .catalog import Track

logger = logging.getLogger(__name__)


class PlayerStatus(Enum):
    """Estado del reproductor."""

    STOPPED = 0
    PLAYING = 1
    PAUSED = 2


class AudioPlayer(QObject):
    """
    Reproductor de tracks del catálogo.

    Signals:
        status_changed: Nuevo PlayerStatus
        position_changed: Posición en milisegundos
        duration_changed: Duración en milisegundos
        track_changed: Track cargado (o None)
        ended: Fin del track
    """

    status_changed = pyqtSignal(object)
    position_changed = pyqtSignal(int)
    duration_changed = pyqtSignal(int)
    track_changed = pyqtSignal(object)
    ended = pyqtSignal()

    def __init__(self, data_dir: Optional[Path] = None, volume: float = 0.8, parent=None):
        super().__init__(parent)

        self.data_dir = data_dir or Path.cwd()
        self.status = PlayerStatus.STOPPED
        self.track: Optional[Track] = None

        self.audio = QAudioOutput()
        self.media = QMediaPlayer()
        self.media.setAudioOutput(self.audio)
        self.set_volume(volume)

        self.media.positionChanged.connect(self.position_changed.emit)
        self.media.durationChanged.connect(self.duration_changed.emit)
        self.media.playbackStateChanged.connect(self._on_state_changed)
        self.media.mediaStatusChanged.connect(self._on_media_status)
        self.media.errorOccurred.connect(self._on_error)

    # --- Handlers de Qt ---

    def _on_state_changed(self, state: QMediaPlayer.PlaybackState) -> None:
        if state == QMediaPlayer.PlaybackState.PlayingState:
            self._set_status(PlayerStatus.PLAYING)
        elif state == QMediaPlayer.PlaybackState.PausedState:
            self._set_status(PlayerStatus.PAUSED)
        else:
            self._set_status(PlayerStatus.STOPPED)

    def _on_media_status(self, status: QMediaPlayer.MediaStatus) -> None:
        if status == QMediaPlayer.MediaStatus.EndOfMedia:
            self._set_status(PlayerStatus.STOPPED)
            self.ended.emit()

    def _on_error(self, error, message: str = "") -> None:
        logger.error(f"Error de reproducción: {message or error}")

    def _set_status(self, new_status: PlayerStatus) -> None:
        if self.status != new_status:
            self.status = new_status
            self.status_changed.emit(self.status)

    # --- Reloj de reproducción ---

    def position_seconds(self) -> float:
        return self.media.position() / 1000.0

    def duration_seconds(self) -> float:
        return self.media.duration() / 1000.0

    def is_playing(self) -> bool:
        return self.status == PlayerStatus.PLAYING

    def seek(self, seconds: float) -> None:
        """Mueve la reproducción a una posición en segundos."""
        self.media.setPosition(max(0, int(round(seconds * 1000))))

    # --- API pública ---

    def _resolve_source(self, audio_url: str) -> QUrl:
        if audio_url.startswith(("http://", "https://", "file:")):
            return QUrl(audio_url)
        path = Path(audio_url)
        if not path.is_absolute():
            path = self.data_dir / path
        return QUrl.fromLocalFile(str(path))

    def load(self, track: Track, autoplay: bool = False) -> None:
        """Carga un track; si autoplay es True empieza a reproducir."""
        self.media.stop()
        self.track = track
        self.track_changed.emit(track)

        if not track.audio_url:
            logger.warning(f"El track no tiene audio: {track}")
            return

        self.media.setSource(self._resolve_source(track.audio_url))
        logger.info(f"Track cargado: {track}")
        if autoplay:
            self.play()

    def play(self) -> None:
        if self.track is not None:
            self.media.play()

    def pause(self) -> None:
        self.media.pause()

    def stop(self) -> None:
        self.media.stop()

    def toggle_play_pause(self) -> None:
        if self.is_playing():
            self.pause()
        else:
            self.play()

    def set_volume(self, volume: float) -> None:
        self.audio.setVolume(min(1.0, max(0.0, float(volume))))
