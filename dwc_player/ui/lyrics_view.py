"""
Vista de letras sincronizadas.

Muestra todas las líneas en un área con scroll, resalta la línea
activa, la centra con scroll suave y recibe las palabras del efecto
typewriter. Un clic en una línea sincronizada pide un seek.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PyQt6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QLabel,
    QScrollArea,
    QSizePolicy,
)
from PyQt6.QtCore import (
    Qt,
    QPropertyAnimation,
    QEasingCurve,
    QTimer,
    pyqtSignal,
)
from PyQt6.QtGui import QMouseEvent

from ..lrc_parser import TimedLine
from ..lyrics_service import ResolvedLyrics
from ..sync_engine import SyncState

logger = logging.getLogger(__name__)


@dataclass
class LyricsViewConfig:
    """Configuración visual de la vista de letras."""

    font_size: int = 20
    font_family: str = "Inter, Segoe UI, sans-serif"
    bg_color: str = "#0a0a0f"
    highlight_color: str = "#00f5ff"
    dim_color: str = "rgba(255, 255, 255, 0.45)"
    scroll_duration_ms: int = 300


class LyricLabel(QLabel):
    """Línea de letra; emite line_clicked con su índice si es sincronizada."""

    line_clicked = pyqtSignal(int)

    def __init__(self, config: LyricsViewConfig, text: str = "", line_index: int = -1, parent=None):
        super().__init__(text, parent)
        self._config = config
        self._full_text = text
        self._line_index = line_index
        self._is_current = False

        self.setWordWrap(True)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Minimum)
        if line_index >= 0:
            self.setCursor(Qt.CursorShape.PointingHandCursor)
        self._update_style()

    @property
    def line_index(self) -> int:
        return self._line_index

    def set_current(self, is_current: bool) -> None:
        """Marca esta línea como actual o no; al desmarcar restaura el texto."""
        self._is_current = is_current
        if not is_current:
            self.setText(self._full_text)
        self._update_style()

    def clear_text(self) -> None:
        self.setText("")

    def append_word(self, word: str) -> None:
        current = self.text()
        self.setText(f"{current} {word}" if current else word)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton and self._line_index >= 0:
            self.line_clicked.emit(self._line_index)
            event.accept()
            return
        event.ignore()

    def _update_style(self) -> None:
        if self._is_current:
            self.setStyleSheet(
                f"""
                QLabel {{
                    color: {self._config.highlight_color};
                    font-weight: 700;
                    font-size: {self._config.font_size + 6}px;
                    padding: 4px 10px;
                }}
            """
            )
        else:
            self.setStyleSheet(
                f"""
                QLabel {{
                    color: {self._config.dim_color};
                    font-weight: 400;
                    font-size: {self._config.font_size}px;
                    padding: 4px 10px;
                }}
            """
            )


class LyricsView(QWidget):
    """
    Panel de letras.

    Signals:
        line_clicked: Índice de la línea sincronizada clicada
    """

    line_clicked = pyqtSignal(int)

    def __init__(self, config: Optional[LyricsViewConfig] = None, parent=None):
        super().__init__(parent)

        self.config = config or LyricsViewConfig()
        self._labels: list[LyricLabel] = []
        self._active_index: int = -1
        self._scroll_anim: Optional[QPropertyAnimation] = None

        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.scroll_area = QScrollArea()
        self.scroll_area.setWidgetResizable(True)
        self.scroll_area.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.scroll_area.setStyleSheet(
            f"QScrollArea {{ background: {self.config.bg_color}; border: none; }}"
        )

        self._container = QWidget()
        self._lines_layout = QVBoxLayout(self._container)
        self._lines_layout.setSpacing(6)
        self._lines_layout.setAlignment(Qt.AlignmentFlag.AlignTop)
        self.scroll_area.setWidget(self._container)
        layout.addWidget(self.scroll_area, stretch=1)

        self.source_label = QLabel("")
        self.source_label.setAlignment(Qt.AlignmentFlag.AlignRight)
        self.source_label.setStyleSheet("QLabel { color: #777777; font-size: 11px; }")
        layout.addWidget(self.source_label)

    # --- Contenido ---

    def _clear_labels(self) -> None:
        for label in self._labels:
            self._lines_layout.removeWidget(label)
            label.deleteLater()
        self._labels.clear()
        self._active_index = -1

    def _show_message(self, message: str) -> None:
        self._clear_labels()
        label = LyricLabel(self.config, message)
        self._labels.append(label)
        self._lines_layout.addWidget(label)
        self.source_label.setText("")

    def set_searching_lyrics(self) -> None:
        self._show_message("🔍 Cargando letra...")

    def set_no_lyrics_available(self) -> None:
        self._show_message("📝 No hay letra disponible para este track")

    def set_lyrics(self, resolved: ResolvedLyrics) -> None:
        """
        Muestra letras sincronizadas (clicables) o planas.

        Args:
            resolved: Resultado de la resolución de letras.
        """
        document = resolved.document
        if document is None:
            self.set_no_lyrics_available()
            return

        self._clear_labels()

        if document.lines:
            for idx, line in enumerate(document.lines):
                self._add_line(line, idx)
        else:
            for text in document.plain_text.splitlines():
                if text.strip():
                    self._add_plain(text.strip())

        self.source_label.setText(f"Letras de: {resolved.source_name}")
        self.scroll_area.verticalScrollBar().setValue(0)
        logger.info(
            f"Letras mostradas ({resolved.source_name}): {len(self._labels)} líneas"
        )

    def _add_line(self, line: TimedLine, index: int) -> None:
        label = LyricLabel(self.config, line.text, line_index=index)
        label.line_clicked.connect(self.line_clicked.emit)
        self._labels.append(label)
        self._lines_layout.addWidget(label)

    def _add_plain(self, text: str) -> None:
        label = LyricLabel(self.config, text)
        self._labels.append(label)
        self._lines_layout.addWidget(label)

    def _label_at(self, line_index: int) -> Optional[LyricLabel]:
        if 0 <= line_index < len(self._labels) and self._labels[line_index].line_index == line_index:
            return self._labels[line_index]
        return None

    # --- Sincronización ---

    def update_sync(self, state: SyncState) -> None:
        """Quita la marca anterior, marca la nueva línea y la centra."""
        previous = self._label_at(self._active_index)
        if previous:
            previous.set_current(False)

        self._active_index = state.current_line_index
        current = self._label_at(state.current_line_index)
        if current:
            current.set_current(True)
            # Dejar que el layout calcule dimensiones reales primero
            QTimer.singleShot(10, lambda: self._scroll_to_center(current))

    def start_reveal(self, line_index: int) -> None:
        label = self._label_at(line_index)
        if label:
            label.clear_text()

    def reveal_word(self, line_index: int, word_index: int, word: str) -> None:
        label = self._label_at(line_index)
        if label and line_index == self._active_index:
            label.append_word(word)

    def _scroll_to_center(self, target_widget: QWidget) -> None:
        """Anima el scroll vertical para centrar el widget activo."""
        if target_widget not in self._labels:
            return

        scroll_bar = self.scroll_area.verticalScrollBar()
        widget_y = target_widget.geometry().y()
        widget_h = target_widget.geometry().height()
        view_h = self.scroll_area.viewport().height()

        target_scroll = widget_y - (view_h // 2) + (widget_h // 2)
        target_scroll = max(0, min(target_scroll, scroll_bar.maximum()))

        if self._scroll_anim is None:
            self._scroll_anim = QPropertyAnimation(scroll_bar, b"value", self)
            self._scroll_anim.setDuration(self.config.scroll_duration_ms)
            self._scroll_anim.setEasingCurve(QEasingCurve.Type.OutCubic)

        self._scroll_anim.stop()
        self._scroll_anim.setStartValue(scroll_bar.value())
        self._scroll_anim.setEndValue(target_scroll)
        self._scroll_anim.start()
