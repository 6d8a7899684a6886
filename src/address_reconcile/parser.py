from __future__ import annotations

from dataclasses import replace
from typing import List, Mapping, Optional, Sequence, Tuple

from .components import RANGE_ADDRESS_NOTE, NormalizedAddress, NormalizedRecord, RawAddressRecord
from .errors import MalformedAddress
from .normalize import (
    DIRECTIONAL_NORMALIZATION,
    FRACTION_PATTERN,
    HOUSE_NUMBER_PATTERN,
    STREET_TYPE_ABBREVIATIONS,
    TOKEN_PATTERN,
    UNIT_DESIGNATORS,
    UNIT_FOLLOWUP_PATTERN,
    US_STATE_ABBREVIATIONS,
    US_STATE_NAMES,
    ZIP_CODE_PATTERN,
    canonicalize_zip,
    clean_text,
    normalize_city,
    normalize_direction,
    normalize_ordinal,
    normalize_state,
    normalize_street_type,
    normalize_unit_designator,
    tokenize,
)

_FIELD_ALIASES = {
    "address": ("address", "full_address", "address_line", "street_address"),
    "house_number": ("house_number", "house", "number", "address_number", "street_number"),
    "pre_directional": ("pre_directional", "predir", "street_direction"),
    "street_name": ("street_name", "street"),
    "street_type": ("street_type", "suffix", "street_suffix"),
    "post_directional": ("post_directional", "postdir"),
    "unit": ("unit", "unit_number"),
    "unit_designator": ("unit_designator", "unit_type"),
    "unit_value": ("unit_value",),
    "city": ("city", "municipality"),
    "state": ("state", "province"),
    "postal_code": ("postal_code", "zip", "zip_code", "postcode"),
}

_STREET_FIELDS = ("house_number", "pre_directional", "street_name", "street_type", "post_directional")


class _FieldLookup:
    def __init__(self, fields: Mapping[str, str]) -> None:
        self._fields = {str(k).strip().lower(): v for k, v in fields.items()}

    def __call__(self, name: str) -> str:
        for alias in _FIELD_ALIASES[name]:
            value = self._fields.get(alias)
            if value is not None and str(value).strip():
                return str(value).strip()
        return ""


def _starts_unit(tokens: Sequence[str], idx: int) -> bool:
    """A designator starts a unit only when a value follows it, or it is the bare ``#`` marker."""
    token = tokens[idx]
    if token not in UNIT_DESIGNATORS:
        return False
    if token == "#":
        return True
    return idx + 1 < len(tokens) and bool(UNIT_FOLLOWUP_PATTERN.match(tokens[idx + 1]))


def _extract_unit(tokens: List[str]) -> Tuple[str, str, List[str]]:
    for idx, token in enumerate(tokens):
        if _starts_unit(tokens, idx):
            lookahead = idx + 1
            value_tokens = []
            while lookahead < len(tokens) and UNIT_FOLLOWUP_PATTERN.match(tokens[lookahead]):
                value_tokens.append(tokens[lookahead])
                lookahead += 1
            remaining = tokens[:idx] + tokens[lookahead:]
            return normalize_unit_designator(token), "".join(value_tokens), remaining
    return "", "", tokens


def _parse_unit_text(text: str) -> Tuple[str, str]:
    tokens = tokenize(text)
    if not tokens:
        return "", ""
    if tokens[0] in UNIT_DESIGNATORS:
        return normalize_unit_designator(tokens[0]), "".join(tokens[1:])
    return "", "".join(tokens)


def _parse_street_tokens(tokens: Sequence[str]) -> Tuple[NormalizedAddress, Tuple[str, ...]]:
    unit_designator, unit_value, remaining = _extract_unit(list(tokens))
    notes: List[str] = []

    number: Optional[int] = None
    number_suffix = ""
    if remaining:
        number_match = HOUSE_NUMBER_PATTERN.match(remaining[0])
        if number_match:
            number = int(number_match.group(1))
            if number_match.group(2):
                number = min(number, int(number_match.group(2)))
                notes.append(RANGE_ADDRESS_NOTE)
            number_suffix = number_match.group(3) or ""
            remaining.pop(0)
            if not number_suffix and remaining and FRACTION_PATTERN.match(remaining[0]):
                number_suffix = remaining.pop(0)

    pre_directional = ""
    if len(remaining) >= 2 and remaining[0] in DIRECTIONAL_NORMALIZATION:
        # "NORTH ST" is a street named North, not a directional.
        if not (len(remaining) == 2 and remaining[1] in STREET_TYPE_ABBREVIATIONS):
            pre_directional = normalize_direction(remaining.pop(0))

    post_directional = ""
    if len(remaining) >= 2 and remaining[-1] in DIRECTIONAL_NORMALIZATION:
        post_directional = normalize_direction(remaining.pop())

    street_type = ""
    if len(remaining) >= 2 and remaining[-1] in STREET_TYPE_ABBREVIATIONS:
        street_type = normalize_street_type(remaining.pop())

    street_name = " ".join(normalize_ordinal(token) for token in remaining)

    address = NormalizedAddress(
        house_number=number,
        house_number_suffix=number_suffix,
        pre_directional=pre_directional,
        street_name=street_name,
        street_type=street_type,
        post_directional=post_directional,
        unit_designator=unit_designator,
        unit_value=unit_value,
    )
    return address, tuple(notes)


def _split_locality(tokens: List[str]) -> Tuple[List[str], List[str]]:
    """Split a comma-less line into street and locality tokens at the street type."""
    for idx in range(2, len(tokens)):
        if tokens[idx] not in STREET_TYPE_ABBREVIATIONS:
            continue
        end = idx + 1
        if end < len(tokens) and tokens[end] in DIRECTIONAL_NORMALIZATION:
            end += 1
        if end < len(tokens) and _starts_unit(tokens, end):
            end += 1
            while end < len(tokens) and UNIT_FOLLOWUP_PATTERN.match(tokens[end]):
                end += 1
        return tokens[:end], tokens[end:]
    return tokens, []


def _parse_locality(tokens: List[str]) -> Tuple[str, str, str]:
    tokens = list(tokens)
    postal_code = ""
    if tokens and ZIP_CODE_PATTERN.fullmatch(tokens[-1]):
        postal_code = canonicalize_zip(tokens.pop())

    state = ""
    if len(tokens) >= 2 and " ".join(tokens[-2:]) in US_STATE_NAMES:
        state = normalize_state(" ".join(tokens[-2:]))
        del tokens[-2:]
    elif tokens and (tokens[-1] in US_STATE_ABBREVIATIONS or tokens[-1] in US_STATE_NAMES):
        state = normalize_state(tokens.pop())

    return postal_code, state, " ".join(tokens)


def parse_street_line(text: str) -> Tuple[NormalizedAddress, Tuple[str, ...]]:
    """Parse a street line such as ``"100-102 N Main St Apt 4"``."""
    return _parse_street_tokens(tokenize(text))


def parse_address(address_text: str) -> Tuple[NormalizedAddress, Tuple[str, ...]]:
    """Parse a full single-line address, including city, state and ZIP."""
    if not address_text:
        return NormalizedAddress(), ()

    segments = [segment.strip() for segment in clean_text(address_text).split(",")]
    segments = [segment for segment in segments if segment]
    if not segments:
        return NormalizedAddress(), ()

    street_tokens = TOKEN_PATTERN.findall(segments[0])
    locality_tokens: List[str] = []
    for segment in segments[1:]:
        segment_tokens = TOKEN_PATTERN.findall(segment)
        # "100 Main St, Apt 4, Springfield" keeps the unit with the street.
        if segment_tokens and _starts_unit(segment_tokens, 0) and not locality_tokens:
            street_tokens.extend(segment_tokens)
        else:
            locality_tokens.extend(segment_tokens)

    if len(segments) == 1:
        street_tokens, locality_tokens = _split_locality(street_tokens)

    address, notes = _parse_street_tokens(street_tokens)
    postal_code, state, city = _parse_locality(locality_tokens)
    return replace(address, city=city, state=state, postal_code=postal_code), notes


def normalize_fields(
    fields: Mapping[str, str], record_id: Optional[str] = None
) -> Tuple[NormalizedAddress, Tuple[str, ...]]:
    """Normalize raw address fields.

    Structured street fields take precedence over a full ``address`` line;
    the full line still fills in locality fields the record leaves blank.
    Raises :class:`MalformedAddress` when the house number or street name is
    missing after parsing.
    """
    lookup = _FieldLookup(fields)
    full_line = lookup("address")
    street_parts = [lookup(name) for name in _STREET_FIELDS]

    parsed_line = NormalizedAddress()
    if full_line:
        parsed_line, line_notes = parse_address(full_line)

    if any(street_parts):
        address, notes = parse_street_line(" ".join(part for part in street_parts if part))
    elif full_line:
        address, notes = parsed_line, line_notes
    else:
        address, notes = NormalizedAddress(), ()

    unit_designator, unit_value = address.unit_designator, address.unit_value
    if lookup("unit"):
        unit_designator, unit_value = _parse_unit_text(lookup("unit"))
    if lookup("unit_designator"):
        unit_designator = normalize_unit_designator(lookup("unit_designator"))
    if lookup("unit_value"):
        unit_value = "".join(tokenize(lookup("unit_value")))

    address = replace(
        address,
        unit_designator=unit_designator,
        unit_value=unit_value,
        city=normalize_city(lookup("city")) or parsed_line.city,
        state=normalize_state(lookup("state")) or parsed_line.state,
        postal_code=canonicalize_zip(lookup("postal_code")) or parsed_line.postal_code,
    )

    missing = []
    if address.house_number is None:
        missing.append("house_number")
    if not address.street_name:
        missing.append("street_name")
    if missing:
        raise MalformedAddress(missing, record_id)
    return address, notes


def normalize_record(record: RawAddressRecord) -> NormalizedRecord:
    address, notes = normalize_fields(record.fields, record.record_id)
    return NormalizedRecord(record.record_id, address, record.geometry, notes)
