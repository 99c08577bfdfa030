"""
Ventana principal del reproductor.

Lista de tracks con búsqueda y selector de playlist, controles de
reproducción, barra de progreso y panel de letras.
"""

import logging
from typing import Optional

from PyQt6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QComboBox,
    QPushButton,
    QSlider,
    QSplitter,
)
from PyQt6.QtCore import Qt, pyqtSignal

from ..catalog import Playlist, Track
from .lyrics_view import LyricsView

logger = logging.getLogger(__name__)


def format_time(ms: int) -> str:
    seconds = max(0, ms) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


class PlayerWindow(QWidget):
    """
    Ventana del reproductor.

    Signals:
        track_selected: Índice del track en el catálogo
        play_pause_clicked: Alternar reproducción
        previous_clicked / next_clicked: Cambiar de track
        seek_requested: Posición en milisegundos desde la barra de progreso
        search_requested: Texto de búsqueda (Enter o botón)
        search_cleared: La caja de búsqueda quedó vacía
        playlist_selected: Id de playlist ("" = todos los tracks)
    """

    track_selected = pyqtSignal(int)
    play_pause_clicked = pyqtSignal()
    previous_clicked = pyqtSignal()
    next_clicked = pyqtSignal()
    seek_requested = pyqtSignal(int)
    search_requested = pyqtSignal(str)
    search_cleared = pyqtSignal()
    playlist_selected = pyqtSignal(str)

    def __init__(self, width: int = 900, height: int = 640, parent=None):
        super().__init__(parent)

        self._slider_dragging = False
        self.setWindowTitle("DWC Player")
        self.resize(width, height)
        self._setup_ui()

    def _setup_ui(self) -> None:
        root = QVBoxLayout(self)

        # --- Cabecera: track actual ---
        self.track_title_label = QLabel("Sin reproducción")
        self.track_title_label.setStyleSheet("QLabel { font-size: 18px; font-weight: 700; }")
        self.track_artist_label = QLabel("")
        self.track_artist_label.setStyleSheet("QLabel { color: #888888; }")
        root.addWidget(self.track_title_label)
        root.addWidget(self.track_artist_label)

        splitter = QSplitter(Qt.Orientation.Horizontal)

        # --- Lista de tracks ---
        left = QWidget()
        left_layout = QVBoxLayout(left)
        left_layout.setContentsMargins(0, 0, 0, 0)

        self.playlist_selector = QComboBox()
        self.playlist_selector.addItem("Todos los tracks", "")
        self.playlist_selector.currentIndexChanged.connect(self._on_playlist_changed)
        left_layout.addWidget(self.playlist_selector)

        search_row = QHBoxLayout()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Buscar tracks...")
        self.search_input.returnPressed.connect(self._on_search)
        self.search_input.textChanged.connect(self._on_search_text_changed)
        search_btn = QPushButton("🔍")
        search_btn.clicked.connect(self._on_search)
        search_row.addWidget(self.search_input, stretch=1)
        search_row.addWidget(search_btn)
        left_layout.addLayout(search_row)

        self.track_list = QListWidget()
        self.track_list.itemActivated.connect(self._on_item_activated)
        left_layout.addWidget(self.track_list, stretch=1)

        splitter.addWidget(left)

        # --- Letras ---
        self.lyrics_view = LyricsView()
        splitter.addWidget(self.lyrics_view)
        splitter.setStretchFactor(1, 2)
        root.addWidget(splitter, stretch=1)

        # --- Progreso ---
        progress_row = QHBoxLayout()
        self.current_time_label = QLabel("0:00")
        self.progress_slider = QSlider(Qt.Orientation.Horizontal)
        self.progress_slider.sliderPressed.connect(self._on_slider_pressed)
        self.progress_slider.sliderReleased.connect(self._on_slider_released)
        self.duration_label = QLabel("0:00")
        progress_row.addWidget(self.current_time_label)
        progress_row.addWidget(self.progress_slider, stretch=1)
        progress_row.addWidget(self.duration_label)
        root.addLayout(progress_row)

        # --- Controles ---
        controls = QHBoxLayout()
        self.prev_btn = QPushButton("⏮")
        self.play_btn = QPushButton("▶")
        self.next_btn = QPushButton("⏭")
        self.prev_btn.clicked.connect(self.previous_clicked.emit)
        self.play_btn.clicked.connect(self.play_pause_clicked.emit)
        self.next_btn.clicked.connect(self.next_clicked.emit)
        controls.addStretch()
        for btn in (self.prev_btn, self.play_btn, self.next_btn):
            controls.addWidget(btn)
        controls.addStretch()
        root.addLayout(controls)

    # --- Handlers internos ---

    def _on_playlist_changed(self, index: int) -> None:
        self.playlist_selected.emit(self.playlist_selector.itemData(index) or "")

    def _on_search(self) -> None:
        self.search_requested.emit(self.search_input.text().strip())

    def _on_search_text_changed(self, text: str) -> None:
        if not text.strip():
            self.search_cleared.emit()

    def _on_item_activated(self, item: QListWidgetItem) -> None:
        index = item.data(Qt.ItemDataRole.UserRole)
        if index is not None:
            self.track_selected.emit(int(index))

    def _on_slider_pressed(self) -> None:
        self._slider_dragging = True

    def _on_slider_released(self) -> None:
        self._slider_dragging = False
        self.seek_requested.emit(self.progress_slider.value())

    # --- API pública ---

    def set_playlists(self, playlists: list[Playlist], selected_id: str = "") -> None:
        """Rellena el selector y marca la playlist selected_id ("" = todos)."""
        self.playlist_selector.blockSignals(True)
        while self.playlist_selector.count() > 1:
            self.playlist_selector.removeItem(1)
        for playlist in playlists:
            self.playlist_selector.addItem(playlist.name, playlist.id)
            if selected_id and playlist.id == selected_id:
                self.playlist_selector.setCurrentIndex(self.playlist_selector.count() - 1)
        self.playlist_selector.blockSignals(False)

    def current_playlist_id(self) -> str:
        return self.playlist_selector.currentData() or ""

    def set_tracks(self, tracks: list[tuple[int, Track]], active_index: int = -1) -> None:
        """
        Muestra tracks en la lista.

        Args:
            tracks: Tuplas (índice en el catálogo, Track)
            active_index: Índice del track actual en el catálogo
        """
        self.track_list.clear()
        for catalog_index, track in tracks:
            text = f"{track.title} - {track.artist}"
            if track.duration:
                text += f"  ({track.duration})"
            if track.preview_only:
                text += "  [Preview]"
            item = QListWidgetItem(text)
            item.setData(Qt.ItemDataRole.UserRole, catalog_index)
            self.track_list.addItem(item)
            if catalog_index == active_index:
                self.track_list.setCurrentItem(item)

    def set_track_info(self, track: Optional[Track]) -> None:
        if track is None:
            self.track_title_label.setText("Sin reproducción")
            self.track_artist_label.setText("")
            return
        self.track_title_label.setText(track.title)
        album = f" · {track.album}" if track.album else ""
        self.track_artist_label.setText(f"{track.artist}{album}")

    def set_playing(self, playing: bool) -> None:
        self.play_btn.setText("⏸" if playing else "▶")

    def set_position(self, position_ms: int) -> None:
        self.current_time_label.setText(format_time(position_ms))
        if not self._slider_dragging:
            self.progress_slider.setValue(position_ms)

    def set_duration(self, duration_ms: int) -> None:
        self.duration_label.setText(format_time(duration_ms))
        self.progress_slider.setRange(0, max(0, duration_ms))
