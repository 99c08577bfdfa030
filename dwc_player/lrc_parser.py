"""
Parser para formato LRC (Lyrics)

Formato LRC soportado:
[mm:ss.cc]Línea de letra
[00:12.00]Primera línea
[00:17.20]Segunda línea

Tags de metadatos (opcionales, línea completa):
[ti:Título]
[ar:Artista]
[al:Álbum]

Solo se interpreta el primer timestamp de cada línea. Las líneas con
varios tags ([00:01.00][00:05.00]Texto) conservan el resto como texto.
"""

import re
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class TimedLine:
    """Línea de letra con su timestamp y sus palabras."""

    time_seconds: float
    text: str
    words: list[str] = field(default_factory=list)

    @property
    def timestamp_ms(self) -> int:
        """Retorna el timestamp en milisegundos."""
        return int(round(self.time_seconds * 1000))

    def __repr__(self) -> str:
        return f"[{LRCParser.format_timestamp(self.time_seconds)}] {self.text}"


@dataclass
class LyricsDocument:
    """Letras parseadas: metadatos, líneas sincronizadas y texto plano."""

    metadata: dict[str, str] = field(default_factory=dict)
    lines: list[TimedLine] = field(default_factory=list)
    # Derivado del texto fuente; no forma parte de la igualdad
    plain_text: str = field(default="", compare=False)

    @property
    def is_synced(self) -> bool:
        """True si hay al menos una línea con timestamp."""
        return len(self.lines) > 0

    def line_index_at(self, position_seconds: float) -> int:
        """
        Encuentra la línea activa para una posición de reproducción.

        Args:
            position_seconds: Posición actual en segundos

        Returns:
            Mayor índice cuyo timestamp es <= posición, o -1 si no hay ninguno
        """
        result_idx = -1
        for idx, line in enumerate(self.lines):
            if line.time_seconds <= position_seconds:
                result_idx = idx
            else:
                break
        return result_idx


class LRCParser:
    """Parser para archivos/strings en formato LRC."""

    # [mm:ss.cc]texto (solo el primer tag de la línea)
    TIMED_LINE_PATTERN = re.compile(r"^\[(\d+):(\d+)\.(\d+)\](.*)$")

    # [tag:valor] ocupando toda la línea
    TAG_PATTERN = re.compile(r"^\[(\w+):(.+)\]$")

    # Cualquier timestamp, para derivar el texto plano
    TIMESTAMP_PATTERN = re.compile(r"\[\d+:\d+\.\d+\]")

    WHITESPACE_PATTERN = re.compile(r"\s+")

    @classmethod
    def parse(cls, lrc_content: Optional[str]) -> LyricsDocument:
        """
        Parsea contenido LRC a estructura de datos.

        Nunca lanza excepciones: las líneas mal formadas se ignoran.

        Args:
            lrc_content: String con contenido en formato LRC

        Returns:
            LyricsDocument con las líneas ordenadas por tiempo
        """
        if not lrc_content:
            return LyricsDocument()

        lines: list[TimedLine] = []
        metadata: dict[str, str] = {}

        for raw_line in lrc_content.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            time_match = cls.TIMED_LINE_PATTERN.match(line)
            if time_match:
                minutes, seconds, fraction, text = time_match.groups()
                text = text.strip()
                if text:
                    lines.append(
                        TimedLine(
                            time_seconds=cls._to_seconds(minutes, seconds, fraction),
                            text=text,
                            words=cls.split_words(text),
                        )
                    )
                continue

            tag_match = cls.TAG_PATTERN.match(line)
            if tag_match:
                value = tag_match.group(2).strip()
                if value:
                    metadata[tag_match.group(1)] = value

        # sort() es estable: los empates conservan el orden de entrada
        lines.sort(key=lambda x: x.time_seconds)

        return LyricsDocument(
            metadata=metadata,
            lines=lines,
            plain_text=cls.strip_time_tags(lrc_content),
        )

    @staticmethod
    def _to_seconds(minutes: str, seconds: str, fraction: str) -> float:
        # .cc son centésimas; .ccc se interpreta como milésimas
        if len(fraction) == 3:
            return int(minutes) * 60 + int(seconds) + int(fraction) / 1000
        return int(minutes) * 60 + int(seconds) + int(fraction) / 100

    @classmethod
    def split_words(cls, text: str) -> list[str]:
        """Divide el texto en palabras para el efecto typewriter."""
        return [word for word in cls.WHITESPACE_PATTERN.split(text) if word]

    @classmethod
    def strip_time_tags(cls, lrc_content: str) -> str:
        """Elimina todos los timestamps [mm:ss.cc] y recorta el resultado."""
        return cls.TIMESTAMP_PATTERN.sub("", lrc_content).strip()

    @staticmethod
    def format_timestamp(time_seconds: float) -> str:
        """Formatea segundos como mm:ss.cc, o mm:ss.ccc si hace falta precisión de milésimas"""
        total_ms = int(round(time_seconds * 1000))
        minutes, rest = divmod(total_ms, 60000)
        seconds, millis = divmod(rest, 1000)
        if millis % 10:
            return f"{minutes:02d}:{seconds:02d}.{millis:03d}"
        return f"{minutes:02d}:{seconds:02d}.{millis // 10:02d}"

    @classmethod
    def to_lrc(cls, document: LyricsDocument) -> str:
        """
        Convierte un LyricsDocument de vuelta a formato LRC string.

        Args:
            document: Documento a serializar

        Returns:
            String en formato LRC
        """
        result = [f"[{key}:{value}]" for key, value in document.metadata.items()]

        if result:
            result.append("")  # Línea vacía después de metadatos

        for line in document.lines:
            result.append(f"[{cls.format_timestamp(line.time_seconds)}]{line.text}")

        return "\n".join(result)
