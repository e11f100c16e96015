from dataclasses import dataclass

from asciicells.charsets import CHAR_SETS, DEFAULT_RAMP
from asciicells.errors import ConfigurationError

MODES = ("brightness", "structure")
DEFAULT_ASPECT = 2
FG_COLOURS_RANGE = (2, 32)
BG_COLOURS_RANGE = (1, 16)


def _check_int(name: str, value, low: int, high: int | None = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < low or (high is not None and value > high):
        bound = f"{low}..{high}" if high is not None else f">= {low}"
        raise ConfigurationError(f"{name} must be {bound}, got {value}")


@dataclass(frozen=True)
class GenerateOptions:
    """Options for a single generation call.

    Values are validated on construction and rejected when out of range;
    nothing is clamped.
    """

    text_width: int
    mode: str = "brightness"
    ramp: str = DEFAULT_RAMP
    fg_colours: int = 8
    bg_colours: int = 4
    use_background_colours: bool = True
    aspect: int = DEFAULT_ASPECT

    def __post_init__(self):
        _check_int("text_width", self.text_width, 1)
        if self.mode not in MODES:
            raise ConfigurationError(f"mode must be one of {', '.join(MODES)}, got {self.mode!r}")
        if self.ramp not in CHAR_SETS:
            raise ConfigurationError(f"Unknown ramp {self.ramp!r}. Available: {', '.join(CHAR_SETS)}")
        _check_int("fg_colours", self.fg_colours, *FG_COLOURS_RANGE)
        _check_int("bg_colours", self.bg_colours, *BG_COLOURS_RANGE)
        if not isinstance(self.use_background_colours, bool):
            raise ConfigurationError(f"use_background_colours must be a bool, got {self.use_background_colours!r}")
        _check_int("aspect", self.aspect, 1)

    @property
    def ramp_chars(self) -> str:
        return CHAR_SETS[self.ramp]
