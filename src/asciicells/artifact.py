import json
from dataclasses import dataclass, field
from pathlib import Path

from asciicells.engine import RGB, TRANSPARENT, AsciiChar
from asciicells.errors import ArtifactError

FORMAT_VERSION = 1
TRANSPARENT_TOKEN = "-1,-1,"
ESCAPED_PIPE = "\\|"


def hex_colour(rgb: RGB) -> str:
    r, g, b = rgb
    return f"#{int(r):02X}{int(g):02X}{int(b):02X}"


def parse_hex(value: str) -> RGB:
    if len(value) != 7 or not value.startswith("#"):
        raise ArtifactError(f"Bad palette colour: {value!r}")
    try:
        return (int(value[1:3], 16), int(value[3:5], 16), int(value[5:7], 16))
    except ValueError as e:
        raise ArtifactError(f"Bad palette colour: {value!r}") from e


@dataclass
class AsciiArtifact:
    width: int  # cells
    height: int  # cells
    fg_palette: list[str] = field(default_factory=list)
    bg_palette: list[str] = field(default_factory=list)
    data: list[str] = field(default_factory=list)
    unit_id: str | None = None

    def filename(self, unit_id: str | None = None) -> str:
        return f"{self._unit_id(unit_id)}_{self.width}.json"

    def _unit_id(self, unit_id: str | None) -> str:
        unit_id = unit_id if unit_id is not None else self.unit_id
        if not unit_id:
            raise ValueError("A unit id is required to persist an artifact")
        return unit_id

    def to_document(self, unit_id: str | None = None) -> dict:
        return {
            "version": FORMAT_VERSION,
            "unit_id": self._unit_id(unit_id),
            "width": self.width,
            "height": self.height,
            "fg_palette": list(self.fg_palette),
            "bg_palette": list(self.bg_palette),
            "data": list(self.data),
        }

    def to_json(self, unit_id: str | None = None) -> str:
        return json.dumps(self.to_document(unit_id), ensure_ascii=False, separators=(",", ":"))

    def save(self, directory: str | Path, unit_id: str | None = None) -> Path:
        """Write ``{unit_id}_{width}.json`` into ``directory`` and return its path."""
        path = Path(directory) / self.filename(unit_id)
        path.write_text(self.to_json(unit_id), encoding="utf-8")
        return path

    @classmethod
    def from_document(cls, doc: dict) -> "AsciiArtifact":
        version = doc.get("version")
        if version != FORMAT_VERSION:
            raise ArtifactError(f"Unsupported format version: {version}")
        try:
            return cls(
                width=int(doc["width"]),
                height=int(doc["height"]),
                fg_palette=list(doc["fg_palette"]),
                bg_palette=list(doc["bg_palette"]),
                data=list(doc["data"]),
                unit_id=doc.get("unit_id"),
            )
        except KeyError as e:
            raise ArtifactError(f"Missing field: {e.args[0]}") from e
        except (TypeError, ValueError) as e:
            raise ArtifactError(f"Malformed artifact: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> "AsciiArtifact":
        path = Path(path)
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ArtifactError(f"Not an artifact file: {path}") from e
        if not isinstance(doc, dict):
            raise ArtifactError(f"Not an artifact file: {path}")
        return cls.from_document(doc)


def _cell_token(fg_index: int, bg_index: int, char: str) -> str:
    return f"{fg_index},{bg_index},{ESCAPED_PIPE if char == '|' else char}"


def encode(cells: list[list[AsciiChar]]) -> AsciiArtifact:
    """Encode a character grid with deduplicated, first-seen-ordered hex palettes.

    Each row becomes ``|``-separated ``fg,bg,char`` tokens; a literal pipe is
    written as ``\\|`` and transparent cells as ``-1,-1,``.
    """
    width = len(cells[0]) if cells else 0
    fg_index: dict[str, int] = {}
    bg_index: dict[str, int] = {}

    for row in cells:
        if len(row) != width:
            raise ValueError(f"Ragged grid: row of {len(row)} cells, expected {width}")
        for cell in row:
            if cell.transparent:
                continue
            if len(cell.char) != 1:
                raise ValueError(f"Cell character must be a single code point, got {cell.char!r}")
            fg_index.setdefault(hex_colour(cell.fg), len(fg_index))
            bg_index.setdefault(hex_colour(cell.bg), len(bg_index))

    data = []
    for row in cells:
        tokens = []
        for cell in row:
            if cell.transparent:
                tokens.append(TRANSPARENT_TOKEN)
            else:
                tokens.append(_cell_token(fg_index[hex_colour(cell.fg)], bg_index[hex_colour(cell.bg)], cell.char))
        data.append("|".join(tokens))

    return AsciiArtifact(
        width=width,
        height=len(cells),
        fg_palette=list(fg_index),
        bg_palette=list(bg_index),
        data=data,
    )


def _read_index(row: str, pos: int) -> tuple[int, int]:
    end = row.find(",", pos)
    if end < 0:
        raise ArtifactError(f"Truncated cell at column {pos}: {row!r}")
    try:
        return int(row[pos:end]), end + 1
    except ValueError as e:
        raise ArtifactError(f"Bad palette index {row[pos:end]!r} in row {row!r}") from e


def parse_row(row: str) -> list[tuple[int, int, str]]:
    """Split one encoded row into (fg_index, bg_index, char) triples.

    Every non-transparent token carries exactly one character, so ``\\|``
    followed by a separator or the end of the row is an escaped pipe, while a
    backslash followed by a separator and another token is a backslash.
    """
    cells: list[tuple[int, int, str]] = []
    if not row:
        return cells
    n = len(row)
    pos = 0
    while True:
        fg, pos = _read_index(row, pos)
        bg, pos = _read_index(row, pos)
        if fg < 0 or bg < 0:
            if (fg, bg) != (-1, -1):
                raise ArtifactError(f"Bad transparent token in row {row!r}")
            char = ""
            # Older files put a placeholder space after the sentinel
            if pos < n and row[pos] != "|":
                pos += 1
        elif row.startswith(ESCAPED_PIPE, pos) and (pos + 2 == n or row[pos + 2] == "|"):
            char = "|"
            pos += 2
        elif pos < n:
            char = row[pos]
            pos += 1
        else:
            raise ArtifactError(f"Missing character at end of row {row!r}")
        cells.append((fg, bg, char))

        if pos == n:
            return cells
        if row[pos] != "|":
            raise ArtifactError(f"Expected '|' at column {pos} in row {row!r}")
        pos += 1


def decode(artifact: AsciiArtifact) -> list[list[AsciiChar]]:
    """Rebuild the character grid from an artifact's palettes and rows."""
    fg_palette = [parse_hex(c) for c in artifact.fg_palette]
    bg_palette = [parse_hex(c) for c in artifact.bg_palette]
    if len(artifact.data) != artifact.height:
        raise ArtifactError(f"Expected {artifact.height} rows, got {len(artifact.data)}")

    grid = []
    for row in artifact.data:
        triples = parse_row(row)
        if len(triples) != artifact.width:
            raise ArtifactError(f"Expected {artifact.width} cells, got {len(triples)} in row {row!r}")
        cells = []
        for fg, bg, char in triples:
            if fg == -1:
                cells.append(TRANSPARENT)
                continue
            if fg >= len(fg_palette) or bg >= len(bg_palette):
                raise ArtifactError(f"Palette index out of range: {fg},{bg}")
            cells.append(AsciiChar(char, fg_palette[fg], bg_palette[bg]))
        grid.append(cells)
    return grid
