"""
Entity normalizer: free text -> canonical numeric quantities.

Customers write sizes in many shapes: "4x5", "4 x 5 m", "cuatro por cinco",
"tres y medio por seis", "uno treinta por dos", "ancho 5 largo 6",
"8 metros de largo x 5 de ancho". Everything here is best effort: when a
message is ambiguous the parsers return None instead of guessing.

All functions are pure and side-effect free.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from salesflow.utils import dimension_key

logger = logging.getLogger(__name__)

# Sizes beyond this are treated as noise (phone fragments, prices).
MAX_DIMENSION_METERS = 500.0
ROLL_LENGTHS = (50.0, 100.0)
BORDE_LENGTHS = (6.0, 9.0, 18.0, 54.0)

NUMBER_WORDS: dict[str, str] = {
    "cero": "0", "uno": "1", "una": "1", "dos": "2", "tres": "3", "cuatro": "4",
    "cinco": "5", "seis": "6", "siete": "7", "ocho": "8", "nueve": "9",
    "diez": "10", "once": "11", "doce": "12", "trece": "13", "catorce": "14",
    "quince": "15", "dieciséis": "16", "dieciseis": "16", "diecisiete": "17",
    "dieciocho": "18", "diecinueve": "19", "veinte": "20", "veintiuno": "21",
    "veintidós": "22", "veintidos": "22", "veintitrés": "23", "veintitres": "23",
    "veinticuatro": "24", "veinticinco": "25", "treinta": "30", "cuarenta": "40",
    "cincuenta": "50", "sesenta": "60", "setenta": "70", "ochenta": "80", "noventa": "90",
}

_HALF_BASE = "uno|una|dos|tres|cuatro|cinco|seis|siete|ocho|nueve|diez|once|doce"
_DECIMAL_ONES = "uno|dos|tres|cuatro|cinco|seis|siete|ocho|nueve|diez"
_DECIMAL_FRAGMENT = (
    "diez|veinte|treinta|cuarenta|cincuenta|sesenta|setenta|ochenta|noventa|"
    "cero|uno|dos|tres|cuatro|cinco|seis|siete|ocho|nueve"
)
_TENS = "veinte|treinta|cuarenta|cincuenta|sesenta|setenta|ochenta|noventa"
_ONES = "uno|una|dos|tres|cuatro|cinco|seis|siete|ocho|nueve"

_NUM = r"(\d+(?:\.\d+)?)"
_UNIT = r"(?:m(?:ts|etros?|t)?\.?)?"


@dataclass(frozen=True)
class Dimensions:
    """A width/height pair as the customer wrote it."""
    width: float
    height: float

    @property
    def key(self) -> str:
        return dimension_key(self.width, self.height)

    @property
    def has_fractional(self) -> bool:
        return not (float(self.width).is_integer() and float(self.height).is_integer())

    @property
    def is_roll(self) -> bool:
        """True for bulk sizes such as 4.20x100, which belong to roll products."""
        return max(self.width, self.height) in ROLL_LENGTHS


@dataclass(frozen=True)
class RollDimensions:
    width: float
    length: Optional[float] = None


@dataclass(frozen=True)
class ParsedSize:
    """Catalog size string parsed into whichever shape it describes."""
    width: Optional[float] = None
    height: Optional[float] = None
    length: Optional[float] = None
    triangle_side: Optional[float] = None

    @property
    def key(self) -> Optional[str]:
        if self.width is None or self.height is None:
            return None
        return dimension_key(self.width, self.height)


# ---------------------------------------------------------------------- #
#  Number words
# ---------------------------------------------------------------------- #

def convert_spanish_numbers(text: str) -> str:
    """Convert Spanish number words to digits.

    Examples:
        >>> convert_spanish_numbers("seis por cuatro")
        '6 por 4'
        >>> convert_spanish_numbers("tres y medio")
        '3.5'
        >>> convert_spanish_numbers("uno treinta")
        '1.30'
        >>> convert_spanish_numbers("treinta y cinco")
        '35'
    """
    if not text:
        return text

    converted = text.lower()
    converted = re.sub(r"\bun\s+metro\s+y\s+medio\b", "1.5", converted)
    converted = re.sub(
        rf"\b({_HALF_BASE})\s+metros?\s+y\s+medio\b",
        lambda m: f"{NUMBER_WORDS[m.group(1)]}.5",
        converted,
    )
    converted = re.sub(
        rf"\b({_HALF_BASE})\s+y\s+medio\b",
        lambda m: f"{NUMBER_WORDS[m.group(1)]}.5",
        converted,
    )
    # A small number followed by another number word reads as a decimal:
    # "uno treinta" is 1.30 m, "dos diez" is 2.10 m.
    converted = re.sub(
        rf"\b({_DECIMAL_ONES})\s+({_DECIMAL_FRAGMENT})\b",
        lambda m: f"{NUMBER_WORDS[m.group(1)]}.{NUMBER_WORDS[m.group(2)]}",
        converted,
    )
    converted = re.sub(
        rf"\b({_TENS})\s+y\s+({_ONES})\b",
        lambda m: str(int(NUMBER_WORDS[m.group(1)]) + int(NUMBER_WORDS[m.group(2)])),
        converted,
    )
    for word, digit in NUMBER_WORDS.items():
        converted = re.sub(rf"\b{word}\b", digit, converted)
    return converted


def _halves_to_decimal(text: str) -> str:
    return re.sub(r"(\d+)\s*y\s*medio", r"\1.5", text)


def _preprocess(text: str) -> str:
    """Normalize the spacing, typos and units that break the size patterns."""
    s = _halves_to_decimal(convert_spanish_numbers(text))
    s = re.sub(r"(\d)\s+(\.\d+)", r"\1\2", s)
    # "2 00 x 3" and "2:00 x 3" use a space or colon as decimal separator
    s = re.sub(r"(\d+)[\s:](\d{2})(?=\s*[x×*]|\s+por\s|\s*$)", r"\1.\2", s)
    s = re.sub(r"([x×*]\s*)(\d+)[\s:](\d{2})(?=\s*$)", r"\1\2.\3", s)
    # autocorrect turns "3m" into "3 más"
    s = re.sub(r"(\d+(?:\.\d+)?)\s*m[aá]s\b", r"\1m", s)
    s = re.sub(r"(\d+(?:\.\d+)?)\s*(?:mts?|m)\.?(?=[\s,x×*]|$)", r"\1 ", s)
    s = re.sub(r"(\d+(?:\.\d+)?)\s*k\s*(\d+(?:\.\d+)?)", r"\1 x \2", s)
    return s


def _valid(*values: float) -> bool:
    return all(0 < v <= MAX_DIMENSION_METERS for v in values)


# ---------------------------------------------------------------------- #
#  Dimension pairs
# ---------------------------------------------------------------------- #

_LABELED_NO_CONNECTOR = re.compile(rf"(largo|ancho)\s+{_NUM}\s+(ancho|largo)\s+{_NUM}")
_LABELED_POR = re.compile(
    rf"{_NUM}\s*(?:metros?)?\s+de\s+(ancho|largo)\s+por\s+{_NUM}\s*(?:metros?)?\s*(?:de\s+)?(largo|ancho)"
)
_LABELED_X = re.compile(
    rf"{_NUM}\s*(?:metros?)?\s+de\s+(largo|ancho)\s*[x×*]\s*{_NUM}\s*(?:metros?)?\s*(?:de\s+)?(largo|ancho)?"
)
_PAIR_PATTERNS = (
    re.compile(rf"{_NUM}\s*[x×*]\s*{_NUM}"),
    re.compile(rf"(?:de\.?|medida)\s+{_NUM}\s+{_NUM}(?!\s*\d)"),
    re.compile(rf"{_NUM}\s+por\s+{_NUM}"),
    re.compile(rf"{_NUM}\s+metros?\s+(?:de\s+)?(?:ancho\s+)?(?:por|x)\s+{_NUM}(?:\s*metros?)?"),
    re.compile(rf"{_NUM}\s+(?:de\s+)?ancho\s+(?:por|x)\s+{_NUM}\s+(?:de\s+)?largo"),
)
_SQUARE = re.compile(rf"\b(?:de|una?\s+de)\s+{_NUM}\s*(?:metros?)?(?!\s*(?:[x×*\d]|por|piezas?|pzas?|rollos?|unidades?|%))")


def _labeled(first_label: str, first: float, second: float) -> Dimensions:
    if first_label == "ancho":
        return Dimensions(width=first, height=second)
    return Dimensions(width=second, height=first)


def parse_dimensions(text: Optional[str], allow_square: bool = True) -> Optional[Dimensions]:
    """Parse a width x height pair from a customer message.

    Labeled shapes ("ancho 5 largo 6", "8 metros de largo x 5 de ancho")
    assign width from the ``ancho`` label; unlabeled pairs keep the order
    the customer used. With ``allow_square`` a single "de 4 metros" between
    2 and 10 m is read as a 4x4 square.

    Examples:
        >>> parse_dimensions("necesito 4x5")
        Dimensions(width=4.0, height=5.0)
        >>> parse_dimensions("largo 6 ancho 5")
        Dimensions(width=5.0, height=6.0)
        >>> parse_dimensions("hola") is None
        True
    """
    if not text:
        return None
    s = _preprocess(text)

    m = _LABELED_NO_CONNECTOR.search(s)
    if m:
        first, second = float(m.group(2)), float(m.group(4))
        if m.group(1) == m.group(3) or not _valid(first, second):
            return None
        return _labeled(m.group(1), first, second)

    for pattern in (_LABELED_POR, _LABELED_X):
        m = pattern.search(s)
        if m:
            first, second = float(m.group(1)), float(m.group(3))
            if not _valid(first, second):
                return None
            return _labeled(m.group(2), first, second)

    for pattern in _PAIR_PATTERNS:
        m = pattern.search(s)
        if m:
            first, second = float(m.group(1)), float(m.group(2))
            if not _valid(first, second):
                return None
            return Dimensions(width=first, height=second)

    if allow_square:
        m = _SQUARE.search(s)
        if m:
            side = float(m.group(1))
            if 2 <= side <= 10:
                logger.debug("Single dimension %sm read as a square", side)
                return Dimensions(width=side, height=side)
    return None


def parse_roll_dimensions(text: Optional[str]) -> Optional[RollDimensions]:
    """Parse roll sizes: "4.20x100", "de 2.10 por 100", "rollo de 2 metros".

    The larger number of a pair is always the roll length.
    """
    if not text:
        return None
    s = _halves_to_decimal(convert_spanish_numbers(text))
    m = re.search(rf"{_NUM}\s*{_UNIT}\s*(?:x|×|\*|por|de)\s*{_NUM}(?![\d.]|\s*%)", s)
    if m:
        first, second = float(m.group(1)), float(m.group(2))
        if not _valid(first, second):
            return None
        return RollDimensions(width=min(first, second), length=max(first, second))

    m = re.search(rf"rollo\s*(?:de)?\s*{_NUM}\s*{_UNIT}", s)
    if m:
        width = float(m.group(1))
        if 0 < width <= 10:
            return RollDimensions(width=width)
    return None


def parse_linear_length(
    text: Optional[str], common_lengths: Iterable[float] = BORDE_LENGTHS
) -> Optional[float]:
    """Parse a single length for linear products ("18 m", "de 9 metros").

    A bare number is only accepted when it is one of ``common_lengths``.
    """
    if not text:
        return None
    s = convert_spanish_numbers(text)
    patterns = (
        rf"(\d+(?:\.\d+)?)\s*m(?:ts|etros?|t)?\b\.?",
        rf"(?:de|unos?|como)\s*(\d+(?:\.\d+)?)\s*{_UNIT}",
    )
    for pattern in patterns:
        m = re.search(pattern, s)
        if m:
            length = float(m.group(1))
            if _valid(length):
                return length
    m = re.search(r"\b(\d+)\b", s)
    if m and float(m.group(1)) in tuple(common_lengths):
        return float(m.group(1))
    return None


def parse_single_dimension(text: Optional[str]) -> Optional[float]:
    """Parse one measurement given as a follow-up answer ("2 y medio", "3 metros")."""
    if not text:
        return None
    s = _halves_to_decimal(convert_spanish_numbers(text))
    m = re.search(rf"(?:de|como|ha\s*de|unos?)?\s*(\d+(?:\.\d+)?)\s*{_UNIT}(?:\s|$)", s)
    if not m:
        return None
    value = float(m.group(1))
    if value <= 0 or value > 100:
        return None
    return value


# ---------------------------------------------------------------------- #
#  Quantities, percentages, postal codes
# ---------------------------------------------------------------------- #

_QUANTITY_PATTERNS = (
    re.compile(r"(\d+)\s*(?:piezas?|unidades?|rollos?|mallas?|pzas?)\b"),
    re.compile(r"necesito\s*(\d+)\b"),
    re.compile(r"quiero\s*(\d+)\b"),
    re.compile(r"(\d+)\s*de\s+cada\b"),
    re.compile(r"dame\s*(\d+)\b"),
    re.compile(r"son\s*(\d+)\b"),
    re.compile(r"ser[ií]an\s*(\d+)\b"),
)


def _strip_measurements(s: str) -> str:
    s = re.sub(rf"{_NUM}\s*(?:[x×*]|por)\s*{_NUM}", " ", s)
    s = re.sub(r"\d+(?:\.\d+)?\s*(?:%|por\s*ciento|porciento)", " ", s)
    return re.sub(r"\d+(?:\.\d+)?\s*m(?:ts|etros?|t)?\b", " ", s)


def extract_quantity(text: Optional[str], allow_bare: bool = False) -> Optional[int]:
    """Extract a piece count ("15 piezas", "quiero 20").

    Sizes and percentages are removed first so "necesito 4x5" is not read
    as four pieces. A bare number only counts when ``allow_bare`` is set
    (the customer was just asked how many).
    """
    if not text:
        return None
    s = _strip_measurements(convert_spanish_numbers(text))
    patterns = list(_QUANTITY_PATTERNS)
    if allow_bare:
        patterns.append(re.compile(r"^\s*(\d+)\s*$"))
    for pattern in patterns:
        m = pattern.search(s)
        if m:
            qty = int(m.group(1))
            if 0 < qty < 10000:
                return qty
    return None


def extract_percentage(text: Optional[str]) -> Optional[int]:
    """Extract a shade percentage ("90%", "al 80 por ciento", "de 50 porciento")."""
    if not text:
        return None
    s = convert_spanish_numbers(text)
    m = re.search(r"(\d{2,3})\s*(?:%|por\s*ciento|porciento)", s)
    if not m:
        m = re.search(r"\bal\s+(\d{2})\b(?!\s*(?:[x×*]|por\s+\d))", s)
    if not m:
        return None
    value = int(m.group(1))
    if 10 <= value <= 100:
        return value
    return None


def extract_zip_code(text: Optional[str]) -> Optional[str]:
    """Extract a Mexican postal code (five digits, optionally after "CP")."""
    if not text:
        return None
    m = re.search(r"(?:c\.?\s*p\.?\s*:?\s*)?\b(\d{5})\b", text.lower())
    return m.group(1) if m else None


# ---------------------------------------------------------------------- #
#  Catalog size strings
# ---------------------------------------------------------------------- #

def parse_size_string(size: Optional[str]) -> Optional[ParsedSize]:
    """Parse a catalog ``size`` field.

    Examples:
        >>> parse_size_string("4x5").key
        '4x5'
        >>> parse_size_string("18 m").length
        18.0
        >>> parse_size_string("Triangulo 4m").triangle_side
        4.0
    """
    if not size:
        return None
    s = size.lower().strip()
    if re.search(r"tri[aá]ngul", s):
        m = re.search(r"(\d+(?:\.\d+)?)", s)
        return ParsedSize(triangle_side=float(m.group(1))) if m else None

    m = re.search(rf"{_NUM}\s*{_UNIT}\s*[x×*]\s*{_NUM}", s)
    if m:
        first, second = float(m.group(1)), float(m.group(2))
        if _valid(first, second):
            return ParsedSize(width=first, height=second)
        return None

    m = re.search(rf"^{_NUM}\s*{_UNIT}$", s) or re.search(rf"{_NUM}\s*m(?:ts|etros?|t)?\b", s)
    if m and _valid(float(m.group(1))):
        return ParsedSize(length=float(m.group(1)))
    return None
