"""CSS value helpers: inline style parsing, lengths and colours.

Colours are normalised to the strings a browser reports from
``getComputedStyle`` (``rgb(r, g, b)`` or ``rgba(r, g, b, a)``) so that
styles captured from a live page and styles derived from static markup
compare the same way.
"""

from __future__ import annotations

import re

TRANSPARENT = "rgba(0, 0, 0, 0)"
DEFAULT_FONT_SIZE_PX = 16.0

_NAMED_COLOURS: dict[str, tuple[int, int, int]] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "lime": (0, 255, 0),
    "yellow": (255, 255, 0),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "navy": (0, 0, 128),
    "teal": (0, 128, 128),
    "maroon": (128, 0, 0),
    "olive": (128, 128, 0),
    "aqua": (0, 255, 255),
    "cyan": (0, 255, 255),
    "fuchsia": (255, 0, 255),
    "magenta": (255, 0, 255),
    "silver": (192, 192, 192),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "darkgray": (169, 169, 169),
    "darkgrey": (169, 169, 169),
    "lightgray": (211, 211, 211),
    "lightgrey": (211, 211, 211),
    "gainsboro": (220, 220, 220),
    "dimgray": (105, 105, 105),
    "dimgrey": (105, 105, 105),
    "darkgreen": (0, 100, 0),
    "darkblue": (0, 0, 139),
    "dodgerblue": (30, 144, 255),
    "royalblue": (65, 105, 225),
    "crimson": (220, 20, 60),
    "whitesmoke": (245, 245, 245),
}

_HEX_RE = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$")
_FUNC_RE = re.compile(r"^rgba?\(\s*([^)]*)\)$")
_LENGTH_RE = re.compile(r"^(-?\d*\.?\d+)\s*(px|em|rem|%|pt)?$")
_COLOUR_TOKEN_RE = re.compile(r"#[0-9a-fA-F]{3,8}\b|rgba?\([^)]*\)|\b[a-zA-Z]+\b")

# A muted foreground: any channel in the washed-out grey band, or a
# mostly transparent colour.
_MUTED_CHANNEL_LOW = 150
_MUTED_CHANNEL_HIGH = 230
_MUTED_MAX_ALPHA = 0.5


def parse_inline_style(style: str | None) -> dict[str, str]:
    """Parse a ``style`` attribute into a lower-cased property map.

    Later declarations win; ``!important`` markers are dropped.
    """
    if not style:
        return {}
    props: dict[str, str] = {}
    for declaration in style.split(";"):
        name, sep, value = declaration.partition(":")
        if not sep:
            continue
        name = name.strip().lower()
        value = value.replace("!important", "").strip()
        if name and value:
            props[name] = value
    return props


def parse_length(value: str | None, *, base: float = DEFAULT_FONT_SIZE_PX) -> float | None:
    """Convert a CSS length to pixels.

    ``em`` and ``%`` resolve against *base*; ``rem`` against the
    default root font size.  Returns ``None`` for anything else
    (``auto``, ``calc()``, keywords).
    """
    if value is None:
        return None
    match = _LENGTH_RE.match(value.strip().lower())
    if not match:
        return None
    number = float(match.group(1))
    unit = match.group(2) or "px"
    if unit == "px":
        return number
    if unit == "em":
        return number * base
    if unit == "rem":
        return number * DEFAULT_FONT_SIZE_PX
    if unit == "%":
        return number * base / 100
    return number * 4 / 3  # pt


def expand_box_shorthand(value: str | None) -> list[str]:
    """Expand a 1-4 value shorthand (``padding``/``margin``) to four sides."""
    if not value:
        return ["0px", "0px", "0px", "0px"]
    parts = value.split()
    if len(parts) == 1:
        parts = parts * 4
    elif len(parts) == 2:
        parts = [parts[0], parts[1], parts[0], parts[1]]
    elif len(parts) == 3:
        parts = [parts[0], parts[1], parts[2], parts[1]]
    return [_px_string(p) for p in parts[:4]]


def _px_string(value: str) -> str:
    px = parse_length(value)
    if px is None:
        return value
    return f"{px:g}px"


def parse_colour(value: str | None) -> tuple[int, int, int, float] | None:
    """Parse a CSS colour into ``(r, g, b, alpha)``."""
    if not value:
        return None
    text = value.strip().lower()
    if text == "transparent":
        return (0, 0, 0, 0.0)
    if text in _NAMED_COLOURS:
        r, g, b = _NAMED_COLOURS[text]
        return (r, g, b, 1.0)

    hex_match = _HEX_RE.match(text)
    if hex_match:
        digits = hex_match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        r, g, b = (int(digits[i : i + 2], 16) for i in (0, 2, 4))
        alpha = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
        return (r, g, b, round(alpha, 3))

    func_match = _FUNC_RE.match(text)
    if func_match:
        raw = [p for p in re.split(r"[\s,/]+", func_match.group(1)) if p]
        if len(raw) < 3:
            return None
        try:
            channels = [_channel(p) for p in raw[:3]]
            alpha = _alpha(raw[3]) if len(raw) > 3 else 1.0
        except ValueError:
            return None
        return (channels[0], channels[1], channels[2], alpha)
    return None


def _channel(token: str) -> int:
    if token.endswith("%"):
        return round(float(token[:-1]) * 255 / 100)
    return max(0, min(255, round(float(token))))


def _alpha(token: str) -> float:
    if token.endswith("%"):
        return max(0.0, min(1.0, float(token[:-1]) / 100))
    return max(0.0, min(1.0, float(token)))


def format_colour(rgba: tuple[int, int, int, float]) -> str:
    """Render ``(r, g, b, alpha)`` the way ``getComputedStyle`` does."""
    r, g, b, alpha = rgba
    if alpha >= 1.0:
        return f"rgb({r}, {g}, {b})"
    return f"rgba({r}, {g}, {b}, {alpha:g})"


def normalize_colour(value: str | None) -> str | None:
    """Return the computed-style form of *value*, or ``None`` if unparseable."""
    parsed = parse_colour(value)
    return format_colour(parsed) if parsed else None


def background_colour(props: dict[str, str]) -> str | None:
    """Resolve the background colour from ``background-color`` or ``background``."""
    explicit = normalize_colour(props.get("background-color"))
    if explicit:
        return explicit
    shorthand = props.get("background")
    if not shorthand:
        return None
    for token in _COLOUR_TOKEN_RE.findall(shorthand):
        colour = normalize_colour(token)
        if colour:
            return colour
    return None


def is_transparent(colour: str | None) -> bool:
    """``True`` when *colour* is missing or fully transparent."""
    parsed = parse_colour(colour)
    return parsed is None or parsed[3] == 0.0


def is_muted(colour: str | None) -> bool:
    """Heuristic for a low-contrast foreground (``#999``, faded text)."""
    parsed = parse_colour(colour)
    if parsed is None:
        return False
    r, g, b, alpha = parsed
    if alpha < _MUTED_MAX_ALPHA:
        return True
    return any(_MUTED_CHANNEL_LOW < c < _MUTED_CHANNEL_HIGH for c in (r, g, b))
