"""Field extractors for FHIR sub-structures.

Pure functions that flatten a single FHIR element (HumanName, CodeableConcept,
Quantity, Period, a value[x] choice, ...) into strings and primitives. All of
them accept ``None`` or malformed input and fall back to a default instead of
raising.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import NO_VALUE_FOUND, UNKNOWN_NAME


def as_dict(obj: Any) -> Dict[str, Any]:
    return obj if isinstance(obj, dict) else {}


def as_list(obj: Any) -> List[Any]:
    return obj if isinstance(obj, list) else []


def as_text(obj: Any) -> str:
    if obj is None:
        return ""
    if isinstance(obj, str):
        return obj
    return format_number(obj)


# =============================================================================
# Primitives
# =============================================================================


_EXPONENT_PADDING = re.compile(r"e([+-])0*(\d)")


def format_number(value: Any) -> str:
    """Render a JSON scalar in JSON number style.

    Integral floats below 1e21 drop their fractional part (``5.0`` -> ``"5"``),
    exponents lose their zero padding (``1e-07`` -> ``"1e-7"``) and booleans are
    lowercase. Magnitudes below 1e-4 always come out in exponent notation,
    so such values may be spelled differently from the source document.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _EXPONENT_PADDING.sub(r"e\1\2", repr(value))
    return str(value)


# =============================================================================
# Coded Concepts
# =============================================================================


def coding_display(codings: Any) -> str:
    """Display text of the first coding, else its code."""
    codings = as_list(codings)
    if not codings:
        return ""
    first = as_dict(codings[0])
    return as_text(first.get("display")) or as_text(first.get("code"))


def codeable_concept_text(concept: Any) -> str:
    """Best human-readable text for a CodeableConcept.

    Prefers ``text``, then the first coding's display, then its code.
    """
    concept = as_dict(concept)
    if not concept:
        return ""
    return as_text(concept.get("text")) or coding_display(concept.get("coding"))


def first_concept_text(concepts: Any) -> str:
    """First non-empty text from a list of CodeableConcepts."""
    for concept in as_list(concepts):
        text = codeable_concept_text(concept)
        if text:
            return text
    return ""


def concept_texts(concepts: Any) -> List[str]:
    """Texts of every CodeableConcept in a list, empties dropped."""
    texts = []
    for concept in as_list(concepts):
        text = codeable_concept_text(concept)
        if text:
            texts.append(text)
    return texts


def coding_codes(concept: Any) -> List[str]:
    """All coding codes of a CodeableConcept."""
    codes = []
    for coding in as_list(as_dict(concept).get("coding")):
        code = as_dict(coding).get("code")
        if code:
            codes.append(as_text(code))
    return codes


# =============================================================================
# People, References, Contact Details
# =============================================================================


def person_name(names: Any) -> str:
    """Render a HumanName list as a single display name.

    The ``official`` entry wins over the first one. ``text`` wins over the
    assembled prefix/given/family parts. Defaults to ``"Unknown"``.
    """
    names = [n for n in as_list(names) if isinstance(n, dict)]
    if not names:
        return UNKNOWN_NAME

    chosen = next((n for n in names if n.get("use") == "official"), names[0])
    text = as_text(chosen.get("text")).strip()
    if text:
        return text

    parts = [
        " ".join(as_text(p) for p in as_list(chosen.get("prefix"))),
        " ".join(as_text(g) for g in as_list(chosen.get("given"))),
        as_text(chosen.get("family")),
    ]
    assembled = re.sub(r"\s+", " ", " ".join(parts)).strip()
    return assembled or UNKNOWN_NAME


def reference_display(reference: Any) -> str:
    """Display text of a Reference, else its literal reference."""
    reference = as_dict(reference)
    return as_text(reference.get("display")) or as_text(reference.get("reference"))


def identifier_values(identifiers: Any) -> List[str]:
    return [
        as_text(i.get("value"))
        for i in as_list(identifiers)
        if isinstance(i, dict) and i.get("value") not in (None, "")
    ]


def telecom_values(contact_points: Any) -> List[str]:
    """ContactPoint list as ``"system: value"`` strings."""
    values = []
    for point in as_list(contact_points):
        point = as_dict(point)
        value = as_text(point.get("value"))
        if not value:
            continue
        system = as_text(point.get("system"))
        values.append(f"{system}: {value}" if system else value)
    return values


def address_lines(addresses: Any) -> List[str]:
    """Address list as one comma-joined line per address."""
    lines = []
    for address in as_list(addresses):
        address = as_dict(address)
        text = as_text(address.get("text"))
        if not text:
            parts = [as_text(line) for line in as_list(address.get("line"))]
            parts += [
                as_text(address.get(key))
                for key in ("city", "district", "state", "postalCode", "country")
            ]
            text = ", ".join(p for p in parts if p)
        if text:
            lines.append(text)
    return lines


def annotation_texts(notes: Any) -> List[str]:
    return [
        as_text(n.get("text"))
        for n in as_list(notes)
        if isinstance(n, dict) and n.get("text")
    ]


# =============================================================================
# Quantities, Periods, Money
# =============================================================================


def quantity_text(quantity: Any) -> Optional[str]:
    """Format a Quantity as ``"{value} {unit}"``.

    Unit falls back to the UCUM ``code``. Returns None when neither part is set.
    """
    quantity = as_dict(quantity)
    value = quantity.get("value")
    unit = as_text(quantity.get("unit")) or as_text(quantity.get("code"))
    if value is None and not unit:
        return None
    parts = [as_text(quantity.get("comparator")), format_number(value), unit]
    return " ".join(p for p in parts if p)


def period_text(period: Any) -> Optional[str]:
    """Format a Period as ``"From: {start} - Until: {end}"``."""
    period = as_dict(period)
    start = as_text(period.get("start"))
    end = as_text(period.get("end"))
    if start and end:
        return f"From: {start} - Until: {end}"
    if start:
        return f"From: {start}"
    if end:
        return f"Until: {end}"
    return None


def period_start(period: Any) -> Optional[str]:
    return as_text(as_dict(period).get("start")) or None


def range_text(range_: Any) -> Optional[str]:
    """Format a Range as ``"{low} - {high}"``."""
    range_ = as_dict(range_)
    low = quantity_text(range_.get("low"))
    high = quantity_text(range_.get("high"))
    if low is None and high is None:
        return None
    return f"{low or ''} - {high or ''}".strip()


def ratio_text(ratio: Any) -> Optional[str]:
    """Format a Ratio as ``"{numerator} / {denominator}"``."""
    ratio = as_dict(ratio)
    numerator = quantity_text(ratio.get("numerator"))
    denominator = quantity_text(ratio.get("denominator"))
    if numerator is None and denominator is None:
        return None
    return f"{numerator or ''} / {denominator or ''}".strip()


def money_text(money: Any) -> Optional[str]:
    """Format a Money element as ``"{value} {currency}"``."""
    money = as_dict(money)
    value = money.get("value")
    currency = as_text(money.get("currency"))
    if value is None and not currency:
        return None
    return " ".join(p for p in (format_number(value), currency) if p)


def timing_text(timing: Any) -> Optional[str]:
    """Summarize a Timing: its code, else ``"{frequency} per {period} {unit}"``."""
    timing = as_dict(timing)
    if not timing:
        return None
    code_text = codeable_concept_text(timing.get("code"))
    if code_text:
        return code_text
    repeat = as_dict(timing.get("repeat"))
    frequency = repeat.get("frequency")
    period = repeat.get("period")
    if frequency is not None or period is not None:
        return " ".join(
            p
            for p in (
                format_number(frequency),
                "per",
                format_number(period),
                as_text(repeat.get("periodUnit")),
            )
            if p
        )
    events = [as_text(e) for e in as_list(timing.get("event")) if e]
    if events:
        return ", ".join(events)
    return None


def dosage_summary(instruction: Any) -> Tuple[str, str]:
    """Dosage and frequency strings from a single Dosage element.

    Args:
        instruction: First ``dosageInstruction`` / ``dosage`` entry

    Returns:
        Tuple of (dosage, frequency), each defaulting to ""
    """
    instruction = as_dict(instruction)
    dosage = as_text(instruction.get("text"))
    if not dosage:
        dose_and_rate = as_list(instruction.get("doseAndRate"))
        if dose_and_rate:
            dosage = quantity_text(as_dict(dose_and_rate[0]).get("doseQuantity")) or ""
    frequency = timing_text(instruction.get("timing")) or ""
    return dosage, frequency


# =============================================================================
# Choice (value[x]) Resolution
# =============================================================================


@dataclass(frozen=True)
class ChoiceValue:
    """A resolved value[x] element."""

    value: str
    unit: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.value != NO_VALUE_FOUND


def _quantity_choice(raw: Any) -> ChoiceValue:
    quantity = as_dict(raw)
    unit = as_text(quantity.get("unit")) or as_text(quantity.get("code"))
    return ChoiceValue(format_number(quantity.get("value")), unit or None)


def _text_choice(formatter: Callable[[Any], Optional[str]]) -> Callable[[Any], ChoiceValue]:
    def resolve(raw: Any) -> ChoiceValue:
        return ChoiceValue(formatter(raw) or "")

    return resolve


# Preference order is fixed; the first slot holding a non-null value wins.
VALUE_SLOTS: Tuple[Tuple[str, Callable[[Any], ChoiceValue]], ...] = (
    ("valueQuantity", _quantity_choice),
    ("valueCodeableConcept", _text_choice(codeable_concept_text)),
    ("valueString", _text_choice(as_text)),
    ("valueBoolean", _text_choice(format_number)),
    ("valueInteger", _text_choice(format_number)),
    ("valueDateTime", _text_choice(as_text)),
    ("valuePeriod", _text_choice(period_text)),
    ("valueRange", _text_choice(range_text)),
    ("valueRatio", _text_choice(ratio_text)),
)


def resolve_value(element: Any) -> ChoiceValue:
    """Resolve the value[x] of an Observation (or one of its components).

    Returns ``ChoiceValue("no value found")`` when none of the recognized
    value slots is present, which is distinct from a present-but-empty value.
    """
    element = as_dict(element)
    for key, resolve in VALUE_SLOTS:
        raw = element.get(key)
        if raw is not None:
            return resolve(raw)
    return ChoiceValue(NO_VALUE_FOUND)


CHOICE_SLOTS: Dict[str, Tuple[Tuple[str, Callable[[Any], Optional[str]]], ...]] = {
    "onset": (
        ("onsetDateTime", as_text),
        ("onsetAge", quantity_text),
        ("onsetPeriod", period_text),
        ("onsetRange", range_text),
        ("onsetString", as_text),
    ),
    "abatement": (
        ("abatementDateTime", as_text),
        ("abatementAge", quantity_text),
        ("abatementPeriod", period_text),
        ("abatementRange", range_text),
        ("abatementString", as_text),
    ),
    "occurrence": (
        ("occurrenceDateTime", as_text),
        ("occurrenceString", as_text),
        ("occurrencePeriod", period_text),
        ("occurrenceTiming", timing_text),
    ),
    "effective": (
        ("effectiveDateTime", as_text),
        ("effectiveInstant", as_text),
        ("effectivePeriod", period_start),
    ),
    "performed": (
        ("performedDateTime", as_text),
        ("performedPeriod", period_start),
        ("performedString", as_text),
    ),
    "scheduled": (
        ("scheduledTiming", timing_text),
        ("scheduledPeriod", period_text),
        ("scheduledString", as_text),
    ),
    "collected": (
        ("collectedDateTime", as_text),
        ("collectedPeriod", period_start),
    ),
    "medication": (
        ("medicationCodeableConcept", codeable_concept_text),
        ("medicationReference", reference_display),
    ),
    "product": (
        ("productCodeableConcept", codeable_concept_text),
        ("productReference", reference_display),
    ),
}


def resolve_choice(element: Any, family: str) -> Optional[str]:
    """Resolve a non-value choice family (onset[x], occurrence[x], ...).

    Args:
        element: FHIR element holding the choice
        family: Key into CHOICE_SLOTS

    Returns:
        Formatted text of the first populated slot, or None if none is set
    """
    element = as_dict(element)
    for key, formatter in CHOICE_SLOTS[family]:
        raw = element.get(key)
        if raw is not None:
            return formatter(raw) or ""
    return None
