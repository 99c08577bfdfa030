"""
Motor de sincronización de letras.

Gestiona la sincronización entre la posición de reproducción
y las líneas de letra, con soporte para:
- Línea activa según la posición del audio (única fuente de tiempo)
- Efecto typewriter palabra por palabra, cancelable
- Saltar a una línea (seek)

Modelo de ejecución: un solo hilo. Un timer repetitivo muestrea el
reloj de reproducción y timers de un disparo revelan las palabras.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from PyQt6.QtCore import QObject, QTimer

from .lrc_parser import LyricsDocument, TimedLine

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Estado del motor de sincronización."""

    IDLE = "idle"
    SYNCING = "syncing"


class PlaybackClock(Protocol):
    """Fuente de tiempo de reproducción (el reproductor de audio)."""

    def position_seconds(self) -> float: ...

    def is_playing(self) -> bool: ...

    def seek(self, seconds: float) -> None: ...


# --- Programación de callbacks ---


class TimerHandle:
    """Callback programado que se puede cancelar."""

    def cancel(self) -> None:
        raise NotImplementedError

    @property
    def active(self) -> bool:
        raise NotImplementedError


class Scheduler:
    """Capacidad de programar ticks repetitivos y callbacks diferidos."""

    def call_repeatedly(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError


class QtTimerHandle(TimerHandle):
    def __init__(self, timer: QTimer):
        self._timer = timer
        self._released = False

    def cancel(self) -> None:
        if not self._released:
            self._timer.stop()
            self._release()

    def _release(self) -> None:
        # deleteLater es seguro aunque el timer esté emitiendo su señal
        self._released = True
        self._timer.deleteLater()

    @property
    def active(self) -> bool:
        return not self._released and self._timer.isActive()


class QtScheduler(Scheduler):
    """Scheduler basado en QTimer (no bloquea el event loop de Qt)."""

    def __init__(self):
        # Dueño de los timers: su vida no depende de las referencias de Python
        self._owner = QObject()

    def call_repeatedly(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        timer = QTimer(self._owner)
        timer.timeout.connect(callback)
        timer.start(interval_ms)
        return QtTimerHandle(timer)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        timer = QTimer(self._owner)
        timer.setSingleShot(True)
        handle = QtTimerHandle(timer)

        def fire() -> None:
            handle._release()
            callback()

        timer.timeout.connect(fire)
        timer.start(delay_ms)
        return handle


# --- Estado ---


@dataclass
class PlaybackCursor:
    """Estado transitorio de una sesión de sincronización."""

    active_line_index: int = -1
    last_queried_time_seconds: float = 0.0


@dataclass
class SyncState:
    """Cambio de línea activa notificado a la UI."""

    current_line_index: int
    previous_line_index: int
    current_line: Optional[TimedLine]
    position_seconds: float


# Type aliases para callbacks
OnLineChangedCallback = Callable[[SyncState], None]
OnRevealStartedCallback = Callable[[int], None]
OnWordRevealedCallback = Callable[[int, int, str], None]
OnStateChangedCallback = Callable[[EngineState], None]


class TypewriterReveal:
    """
    Revela las palabras de una línea una a una a intervalo fijo.

    Solo puede haber una revelación en curso. Cada start() o cancel()
    invalida los pasos pendientes de la anterior (token de generación),
    así que nunca se emiten palabras de una línea cancelada.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        word_delay_ms: int,
        on_word: OnWordRevealedCallback,
        on_start: Optional[OnRevealStartedCallback] = None,
    ):
        self._scheduler = scheduler
        self.word_delay_ms = word_delay_ms
        self._on_word = on_word
        self._on_start = on_start

        self._generation = 0
        self._pending: Optional[TimerHandle] = None
        self._line_index = -1
        self._words: list[str] = []
        self._next_word = 0
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def line_index(self) -> int:
        return self._line_index

    def start(self, line_index: int, words: list[str]) -> None:
        """Inicia la revelación de una línea, cancelando la anterior."""
        self.cancel()
        generation = self._generation

        self._line_index = line_index
        self._words = list(words)
        self._next_word = 0
        self._running = True

        if self._on_start:
            self._on_start(line_index)
        if generation != self._generation:
            return

        # La primera palabra aparece de inmediato
        self._step(generation)

    def _step(self, generation: int) -> None:
        if generation != self._generation or not self._running:
            return

        self._pending = None

        if self._next_word >= len(self._words):
            self._running = False
            return

        word_idx = self._next_word
        self._next_word += 1
        self._on_word(self._line_index, word_idx, self._words[word_idx])

        # El callback pudo cancelar o reemplazar esta revelación
        if generation != self._generation:
            return

        if self._next_word < len(self._words):
            self._pending = self._scheduler.call_later(
                self.word_delay_ms, lambda: self._step(generation)
            )
        else:
            self._running = False

    def cancel(self) -> None:
        """Detiene la revelación actual y todos sus pasos pendientes."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._generation += 1
        self._running = False


class SyncEngine:
    """
    Motor de sincronización de letras con la reproducción.

    Estados: IDLE (sin sincronización) y SYNCING (siguiendo el reloj
    de reproducción contra un LyricsDocument con líneas).
    """

    def __init__(
        self,
        clock: PlaybackClock,
        scheduler: Optional[Scheduler] = None,
        typewriter_enabled: bool = True,
        word_delay_ms: int = 50,
        frame_interval_ms: int = 16,
    ):
        """
        Inicializa el motor de sincronización.

        Args:
            clock: Reproductor que provee la posición actual.
            scheduler: Programador de timers. Default: QtScheduler.
            typewriter_enabled: Activa la revelación palabra por palabra.
            word_delay_ms: Intervalo entre palabras del typewriter.
            frame_interval_ms: Intervalo del muestreo del reloj.
        """
        self.clock = clock
        self._scheduler = scheduler or QtScheduler()
        self.typewriter_enabled = typewriter_enabled
        self.frame_interval_ms = frame_interval_ms

        self._document: Optional[LyricsDocument] = None
        self._state: EngineState = EngineState.IDLE
        self._cursor: Optional[PlaybackCursor] = None
        self._frame_timer: Optional[TimerHandle] = None

        self._typewriter = TypewriterReveal(
            self._scheduler,
            word_delay_ms,
            on_word=self._notify_word_revealed,
            on_start=self._notify_reveal_started,
        )

        # Callbacks
        self._on_line_changed: list[OnLineChangedCallback] = []
        self._on_reveal_started: list[OnRevealStartedCallback] = []
        self._on_word_revealed: list[OnWordRevealedCallback] = []
        self._on_state_changed: list[OnStateChangedCallback] = []

    # --- Letras ---

    def set_document(self, document: Optional[LyricsDocument]) -> None:
        """
        Establece las letras del track actual (cambio de track).

        Detiene cualquier sincronización en curso.
        """
        self.stop()
        self._document = document

    def clear_document(self) -> None:
        self.set_document(None)

    @property
    def document(self) -> Optional[LyricsDocument]:
        return self._document

    @property
    def has_synced_lyrics(self) -> bool:
        """True si hay letras con al menos una línea sincronizada."""
        return self._document is not None and len(self._document.lines) > 0

    # --- Estado ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state == EngineState.SYNCING

    @property
    def cursor(self) -> Optional[PlaybackCursor]:
        return self._cursor

    @property
    def active_line_index(self) -> int:
        """Línea activa, o -1 si no hay ninguna o el motor está inactivo."""
        return self._cursor.active_line_index if self._cursor else -1

    @property
    def typewriter(self) -> TypewriterReveal:
        return self._typewriter

    # --- Control del loop ---

    def start(self) -> bool:
        """
        Inicia la sincronización si hay reproducción y letras sincronizadas.

        Returns:
            True si el motor quedó en SYNCING.
        """
        if self._state == EngineState.SYNCING:
            return True

        if not self.has_synced_lyrics:
            logger.debug("Sin letras sincronizadas, no se inicia la sincronización")
            return False

        if not self.clock.is_playing():
            return False

        self._state = EngineState.SYNCING
        self._cursor = PlaybackCursor()
        self._notify_state_changed()

        self._frame_timer = self._scheduler.call_repeatedly(
            self.frame_interval_ms, self._on_frame
        )
        logger.info("SyncEngine iniciado")

        # Muestra inicial sin esperar al primer tick
        self._on_frame()
        return True

    def stop(self) -> None:
        """Detiene la sincronización (pausa, fin o cambio de track)."""
        self._cancel_frame_timer()
        self._typewriter.cancel()

        if self._state == EngineState.IDLE:
            return

        self._state = EngineState.IDLE
        self._cursor = None
        self._notify_state_changed()
        logger.info("SyncEngine detenido")

    def _cancel_frame_timer(self) -> None:
        if self._frame_timer is not None:
            self._frame_timer.cancel()
            self._frame_timer = None

    def _on_frame(self) -> None:
        """Tick del loop: se detiene solo si ya no hay reproducción."""
        if self._state != EngineState.SYNCING:
            self._cancel_frame_timer()
            return

        if not self.clock.is_playing():
            logger.debug("Reproducción detenida, fin del loop de sincronización")
            self.stop()
            return

        try:
            self._update_sync()
        except Exception as e:
            logger.error(f"Error en loop de sincronización: {e}")

    def _update_sync(self) -> None:
        """Recalcula la línea activa con la posición actual del audio."""
        position = self.clock.position_seconds()
        line_idx = self._document.line_index_at(position)

        cursor = self._cursor
        cursor.last_queried_time_seconds = position

        if line_idx == cursor.active_line_index:
            return

        previous_idx = cursor.active_line_index
        cursor.active_line_index = line_idx
        current_line = self._document.lines[line_idx] if line_idx >= 0 else None

        self._typewriter.cancel()

        self._notify_line_changed(
            SyncState(
                current_line_index=line_idx,
                previous_line_index=previous_idx,
                current_line=current_line,
                position_seconds=position,
            )
        )

        # Un observador pudo detener el motor
        if self._cursor is not cursor:
            return

        if current_line is not None and self.typewriter_enabled:
            self._typewriter.start(line_idx, current_line.words)

    # --- Interacción ---

    def seek_to_line(self, line_index: int) -> bool:
        """
        Lleva la reproducción al timestamp exacto de una línea.

        El siguiente tick recalcula la línea activa de forma normal.

        Args:
            line_index: Índice de la línea objetivo.

        Returns:
            True si se hizo el seek.
        """
        if not self.has_synced_lyrics:
            return False

        if not 0 <= line_index < len(self._document.lines):
            return False

        target = self._document.lines[line_index].time_seconds
        self.clock.seek(target)
        logger.info(f"Seek a línea {line_index}: {target:.2f}s")
        return True

    def get_progress(self) -> tuple[int, int]:
        """
        Obtiene el progreso actual (línea actual / total).

        Returns:
            Tupla (línea_actual, total_líneas)
        """
        if self._document is None:
            return 0, 0

        return max(0, self.active_line_index + 1), len(self._document.lines)

    # --- Callbacks públicos ---

    def on_line_changed(self, callback: OnLineChangedCallback) -> None:
        """Registra callback para cambios de línea activa."""
        self._on_line_changed.append(callback)

    def on_reveal_started(self, callback: OnRevealStartedCallback) -> None:
        """Registra callback para el inicio del typewriter de una línea."""
        self._on_reveal_started.append(callback)

    def on_word_revealed(self, callback: OnWordRevealedCallback) -> None:
        """Registra callback para cada palabra revelada."""
        self._on_word_revealed.append(callback)

    def on_state_changed(self, callback: OnStateChangedCallback) -> None:
        """Registra callback para transiciones IDLE/SYNCING."""
        self._on_state_changed.append(callback)

    def _notify_line_changed(self, state: SyncState) -> None:
        for callback in self._on_line_changed:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error en callback on_line_changed: {e}")

    def _notify_reveal_started(self, line_index: int) -> None:
        for callback in self._on_reveal_started:
            try:
                callback(line_index)
            except Exception as e:
                logger.error(f"Error en callback on_reveal_started: {e}")

    def _notify_word_revealed(self, line_index: int, word_index: int, word: str) -> None:
        for callback in self._on_word_revealed:
            try:
                callback(line_index, word_index, word)
            except Exception as e:
                logger.error(f"Error en callback on_word_revealed: {e}")

    def _notify_state_changed(self) -> None:
        for callback in self._on_state_changed:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error en callback on_state_changed: {e}")
