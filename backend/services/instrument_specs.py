"""
Instrument specification parsing.
Turns free-text upstream titles and property maps into the closed vocabulary
the identity registry stores: instrument type, tuning and frequency.
"""
import re
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from models.snapshot import ExternalLineItem


class InstrumentType(str, Enum):
    INNATO = "INNATO"
    NATEY = "NATEY"
    DOUBLE = "DOUBLE"
    ZEN = "ZEN"
    CARDS = "CARDS"
    UNKNOWN = "UNKNOWN"


# Checked in order; the first substring hit wins
TYPE_KEYWORDS = [
    ("innato", InstrumentType.INNATO),
    ("natey", InstrumentType.NATEY),
    ("double", InstrumentType.DOUBLE),
    ("zen", InstrumentType.ZEN),
    ("cards", InstrumentType.CARDS),
]

ALLOWED_FREQUENCIES = ("432", "440")
DEFAULT_FREEZE_FREQUENCY = "432"
DEFAULT_TITLE_FREQUENCY = "440"

ZEN_SIZES = [
    ("small", "S"), ("mini", "S"),
    ("medium", "M"),
    ("large", "L"),
]

# Dm4, F#m3, Bbm3 -> note, accidental, octave
MINOR_TUNING_RE = re.compile(r"([A-G])(#|b)?m([1-6])")
TITLE_TUNING_RE = re.compile(r"([A-G][#b]?m?[0-9])", re.IGNORECASE)


def parse_instrument_type(text: Optional[str]) -> InstrumentType:
    """Map a free-text model name to the instrument enumeration.
    'Innato Dm4 432Hz' -> INNATO, anything unrecognised -> UNKNOWN"""
    if not text or not isinstance(text, str):
        return InstrumentType.UNKNOWN
    lowered = text.lower()
    for keyword, instrument_type in TYPE_KEYWORDS:
        if keyword in lowered:
            return instrument_type
    return InstrumentType.UNKNOWN


def normalize_tuning(tuning: Optional[str]) -> Tuple[Optional[str], bool]:
    """Strip the minor-key 'm' for storage.

    Returns (storage_tuning, is_minor). 'Dm4' -> ('D4', True), 'C#4' -> ('C#4', False).
    The presentation layer re-adds the suffix where the instrument needs it.
    """
    if not tuning or not isinstance(tuning, str):
        return tuning, False
    match = MINOR_TUNING_RE.search(tuning)
    if not match:
        return tuning, False
    note, accidental, octave = match.groups()
    return f"{note}{accidental or ''}{octave}", True


def normalize_frequency(value: Any) -> Optional[str]:
    """'432Hz', 432, '432 Hz tuning' -> '432'. Unknown values -> None"""
    if value is None:
        return None
    text = str(value)
    for frequency in ALLOWED_FREQUENCIES:
        if frequency in text:
            return frequency
    return None


def extract_tuning_from_title(title: Optional[str]) -> Optional[str]:
    """Pull a tuning note out of a product title, e.g. 'Natey Am3' -> 'Am3'.
    ZEN flutes carry a size instead of a note."""
    if not title:
        return None
    match = TITLE_TUNING_RE.search(title)
    if match:
        return match.group(1)
    lowered = title.lower()
    if "zen" in lowered:
        for keyword, size in ZEN_SIZES:
            if keyword in lowered:
                return size
    return None


def extract_specifications(line_item: ExternalLineItem) -> Dict[str, str]:
    """Build the free-form specification map for an upstream line item.

    Sources, later ones overriding earlier ones:
    - title: full title as type, model/fluteType, tuning, frequency (440 if unstated)
    - variant title: 'Color / Key / Engraved'
    - line item properties: copied verbatim, with color/frequency/type recognised
    """
    specs: Dict[str, str] = {}

    title = line_item.title or ""
    if title:
        specs["type"] = title
        instrument_type = parse_instrument_type(title)
        if instrument_type != InstrumentType.UNKNOWN:
            specs["model"] = instrument_type.value
            specs["fluteType"] = instrument_type.value

        frequency = normalize_frequency(title) or DEFAULT_TITLE_FREQUENCY
        specs["frequency"] = frequency
        specs["tuningFrequency"] = f"{frequency}Hz"

        tuning = extract_tuning_from_title(title)
        if tuning:
            specs["tuning"] = tuning

    if line_item.variant_title:
        parts = line_item.variant_title.split(" / ")
        if len(parts) >= 1:
            specs["color"] = parts[0]
        if len(parts) >= 2:
            specs["key"] = parts[1]
        if len(parts) >= 3:
            specs["engraving"] = "Yes" if parts[2] == "Engraved" else "No"

    for name, value in line_item.properties.items():
        specs[name] = value
        name_lower = name.lower()
        if "color" in name_lower:
            specs["color"] = value
        if "frequency" in name_lower or "tuning" in name_lower or "hz" in name_lower:
            specs["tuningFrequency"] = value
            frequency = normalize_frequency(value)
            if frequency:
                specs["frequency"] = frequency
        if "type" in name_lower or "model" in name_lower:
            specs["type"] = value
            instrument_type = parse_instrument_type(value)
            if instrument_type != InstrumentType.UNKNOWN:
                specs["fluteType"] = instrument_type.value

    if line_item.sku:
        specs["SKU"] = line_item.sku
    specs["fulfillable_quantity"] = str(line_item.fulfillable_quantity)
    specs["line_item_id"] = line_item.line_item_id

    return specs


def freeze_specs_from(specs: Dict[str, Any]) -> Dict[str, Any]:
    """Derive the canonical fields written to the identity registry."""
    raw_type = specs.get("fluteType") or specs.get("model") or specs.get("type")
    instrument_type = parse_instrument_type(raw_type if isinstance(raw_type, str) else None)

    tuning, minor = normalize_tuning(specs.get("tuning"))
    if not tuning:
        tuning = "UNKNOWN"

    raw_frequency = specs.get("frequency") or specs.get("tuningFrequency")
    if raw_frequency in (None, ""):
        frequency = DEFAULT_FREEZE_FREQUENCY
    else:
        frequency = normalize_frequency(raw_frequency)

    return {
        "type": instrument_type.value,
        "tuning": str(tuning),
        "minor": minor,
        "frequency": frequency,
        "color": specs.get("color") or "",
    }
