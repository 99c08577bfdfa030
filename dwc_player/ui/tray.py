"""
System Tray del reproductor.

Icono en la bandeja del sistema con menú para mostrar la ventana,
controlar la reproducción y limpiar el caché de letras.
"""

import logging
from typing import Optional

from PyQt6.QtWidgets import QSystemTrayIcon, QMenu
from PyQt6.QtGui import QIcon, QPixmap, QPainter, QColor, QFont, QAction
from PyQt6.QtCore import Qt, pyqtSignal, QObject

logger = logging.getLogger(__name__)


class TrayIcon(QObject):
    """
    Icono de bandeja del sistema con menú contextual.

    Signals:
        toggle_window: Mostrar/ocultar la ventana del reproductor
        play_pause: Alternar reproducción
        next_track: Siguiente track
        clear_cache: Vaciar el caché de letras
        quit_app: Cerrar la aplicación
    """

    toggle_window = pyqtSignal()
    play_pause = pyqtSignal()
    next_track = pyqtSignal()
    clear_cache = pyqtSignal()
    quit_app = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)

        self._tray: Optional[QSystemTrayIcon] = None
        self._menu: Optional[QMenu] = None
        self._current_track: str = "Sin reproducción"

        self._setup_tray()

    def _create_icon(self) -> QIcon:
        """Genera un icono simple con el símbolo ♪"""
        size = 64
        pixmap = QPixmap(size, size)
        pixmap.fill(QColor(0, 0, 0, 0))

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        painter.setBrush(QColor(0, 245, 255))
        painter.setPen(QColor(0, 0, 0, 0))
        painter.drawEllipse(4, 4, size - 8, size - 8)

        painter.setPen(QColor(10, 10, 15))
        painter.setFont(QFont("Segoe UI", 28, QFont.Weight.Bold))
        painter.drawText(pixmap.rect(), Qt.AlignmentFlag.AlignCenter, "♪")

        painter.end()
        return QIcon(pixmap)

    def _setup_tray(self) -> None:
        self._tray = QSystemTrayIcon(self._create_icon())
        self._menu = QMenu()

        self._track_action = QAction("🎵 Sin reproducción")
        self._track_action.setEnabled(False)
        self._menu.addAction(self._track_action)

        self._menu.addSeparator()

        window_action = QAction("🪟 Mostrar/ocultar reproductor")
        window_action.triggered.connect(self.toggle_window.emit)
        self._menu.addAction(window_action)

        self._play_action = QAction("▶ Reproducir")
        self._play_action.triggered.connect(self.play_pause.emit)
        self._menu.addAction(self._play_action)

        next_action = QAction("⏭ Siguiente")
        next_action.triggered.connect(self.next_track.emit)
        self._menu.addAction(next_action)

        self._menu.addSeparator()

        cache_action = QAction("🗑 Limpiar caché de letras")
        cache_action.triggered.connect(self.clear_cache.emit)
        self._menu.addAction(cache_action)

        self._menu.addSeparator()

        quit_action = QAction("❌ Salir")
        quit_action.triggered.connect(self.quit_app.emit)
        self._menu.addAction(quit_action)

        # QAction sin padre: mantener referencias vivas
        self._actions = [window_action, next_action, cache_action, quit_action]

        self._tray.setContextMenu(self._menu)
        self._tray.setToolTip("DWC Player\nClic derecho para opciones")
        self._tray.activated.connect(self._on_tray_activated)

    def _on_tray_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason in (
            QSystemTrayIcon.ActivationReason.Trigger,
            QSystemTrayIcon.ActivationReason.DoubleClick,
        ):
            self.toggle_window.emit()

    # --- API Pública ---

    def show(self) -> None:
        if self._tray:
            self._tray.show()
            logger.info("Tray icon mostrado")

    def hide(self) -> None:
        if self._tray:
            self._tray.hide()

    def update_track_info(self, artist: str, title: str) -> None:
        """
        Actualiza la información del track actual.

        Args:
            artist: Nombre del artista
            title: Título de la canción
        """
        self._current_track = f"{artist} - {title}"

        display_text = self._current_track
        if len(display_text) > 40:
            display_text = display_text[:37] + "..."
        self._track_action.setText(f"🎵 {display_text}")
        self._tray.setToolTip(f"DWC Player\n{self._current_track}")

    def clear_track_info(self) -> None:
        self._current_track = "Sin reproducción"
        self._track_action.setText("🎵 Sin reproducción")
        self._tray.setToolTip("DWC Player\nClic derecho para opciones")

    def set_playing(self, playing: bool) -> None:
        self._play_action.setText("⏸ Pausar" if playing else "▶ Reproducir")

    def show_notification(
        self,
        title: str,
        message: str,
        icon: QSystemTrayIcon.MessageIcon = QSystemTrayIcon.MessageIcon.Information,
        duration_ms: int = 3000,
    ) -> None:
        if self._tray and self._tray.isVisible():
            self._tray.showMessage(title, message, icon, duration_ms)

    def show_lyrics_found(self, provider: str) -> None:
        self.show_notification(
            "Letras encontradas",
            f"Fuente: {provider}",
            QSystemTrayIcon.MessageIcon.Information,
            2000,
        )

    def show_lyrics_not_found(self) -> None:
        self.show_notification(
            "Sin letras",
            "No se encontraron letras para esta canción",
            QSystemTrayIcon.MessageIcon.Warning,
            2000,
        )

