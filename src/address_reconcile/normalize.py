from __future__ import annotations

import re
from typing import Dict, Optional

US_STATE_ABBREVIATIONS = {
    "AL",
    "AK",
    "AZ",
    "AR",
    "CA",
    "CO",
    "CT",
    "DE",
    "FL",
    "GA",
    "HI",
    "ID",
    "IL",
    "IN",
    "IA",
    "KS",
    "KY",
    "LA",
    "ME",
    "MD",
    "MA",
    "MI",
    "MN",
    "MS",
    "MO",
    "MT",
    "NE",
    "NV",
    "NH",
    "NJ",
    "NM",
    "NY",
    "NC",
    "ND",
    "OH",
    "OK",
    "OR",
    "PA",
    "RI",
    "SC",
    "SD",
    "TN",
    "TX",
    "UT",
    "VT",
    "VA",
    "WA",
    "WV",
    "WI",
    "WY",
    "DC",
}

US_STATE_NAMES: Dict[str, str] = {
    "ALABAMA": "AL",
    "ALASKA": "AK",
    "ARIZONA": "AZ",
    "ARKANSAS": "AR",
    "CALIFORNIA": "CA",
    "COLORADO": "CO",
    "CONNECTICUT": "CT",
    "DELAWARE": "DE",
    "FLORIDA": "FL",
    "GEORGIA": "GA",
    "HAWAII": "HI",
    "IDAHO": "ID",
    "ILLINOIS": "IL",
    "INDIANA": "IN",
    "IOWA": "IA",
    "KANSAS": "KS",
    "KENTUCKY": "KY",
    "LOUISIANA": "LA",
    "MAINE": "ME",
    "MARYLAND": "MD",
    "MASSACHUSETTS": "MA",
    "MICHIGAN": "MI",
    "MINNESOTA": "MN",
    "MISSISSIPPI": "MS",
    "MISSOURI": "MO",
    "MONTANA": "MT",
    "NEBRASKA": "NE",
    "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH",
    "NEW JERSEY": "NJ",
    "NEW MEXICO": "NM",
    "NEW YORK": "NY",
    "NORTH CAROLINA": "NC",
    "NORTH DAKOTA": "ND",
    "OHIO": "OH",
    "OKLAHOMA": "OK",
    "OREGON": "OR",
    "PENNSYLVANIA": "PA",
    "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD",
    "TENNESSEE": "TN",
    "TEXAS": "TX",
    "UTAH": "UT",
    "VERMONT": "VT",
    "VIRGINIA": "VA",
    "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI",
    "WYOMING": "WY",
    "DISTRICT OF COLUMBIA": "DC",
}

# USPS Publication 28 abbreviations for the common street types.
STREET_TYPE_ABBREVIATIONS: Dict[str, str] = {
    "ALLEY": "ALY",
    "ALLY": "ALY",
    "ALY": "ALY",
    "AVENUE": "AVE",
    "AVE": "AVE",
    "AV": "AVE",
    "AVEN": "AVE",
    "BEND": "BND",
    "BND": "BND",
    "BOULEVARD": "BLVD",
    "BLVD": "BLVD",
    "BOUL": "BLVD",
    "CIRCLE": "CIR",
    "CIR": "CIR",
    "CIRC": "CIR",
    "COURT": "CT",
    "CT": "CT",
    "CRT": "CT",
    "COVE": "CV",
    "CV": "CV",
    "CROSSING": "XING",
    "XING": "XING",
    "DRIVE": "DR",
    "DR": "DR",
    "DRV": "DR",
    "EXPRESSWAY": "EXPY",
    "EXPY": "EXPY",
    "FREEWAY": "FWY",
    "FWY": "FWY",
    "HIGHWAY": "HWY",
    "HWY": "HWY",
    "HIWAY": "HWY",
    "LANE": "LN",
    "LN": "LN",
    "LOOP": "LOOP",
    "PARKWAY": "PKWY",
    "PKWY": "PKWY",
    "PKY": "PKWY",
    "PLACE": "PL",
    "PL": "PL",
    "PLAZA": "PLZ",
    "PLZ": "PLZ",
    "POINT": "PT",
    "PT": "PT",
    "ROAD": "RD",
    "RD": "RD",
    "ROUTE": "RTE",
    "RTE": "RTE",
    "SQUARE": "SQ",
    "SQ": "SQ",
    "STREET": "ST",
    "ST": "ST",
    "STR": "ST",
    "TERRACE": "TER",
    "TER": "TER",
    "TRAIL": "TRL",
    "TRL": "TRL",
    "WAY": "WAY",
    "WY": "WAY",
}

DIRECTIONAL_NORMALIZATION: Dict[str, str] = {
    "N": "N",
    "NORTH": "N",
    "S": "S",
    "SOUTH": "S",
    "E": "E",
    "EAST": "E",
    "W": "W",
    "WEST": "W",
    "NE": "NE",
    "NORTHEAST": "NE",
    "NW": "NW",
    "NORTHWEST": "NW",
    "SE": "SE",
    "SOUTHEAST": "SE",
    "SW": "SW",
    "SOUTHWEST": "SW",
}

UNIT_DESIGNATORS: Dict[str, str] = {
    "APT": "APT",
    "APARTMENT": "APT",
    "UNIT": "UNIT",
    "STE": "STE",
    "SUITE": "STE",
    "#": "#",
    "RM": "RM",
    "ROOM": "RM",
    "FLOOR": "FL",
    "FL": "FL",
    "LEVEL": "LVL",
    "LVL": "LVL",
    "BLDG": "BLDG",
    "BUILDING": "BLDG",
    "PH": "PH",
    "PENTHOUSE": "PH",
    "SPC": "SPC",
    "SPACE": "SPC",
    "TRLR": "TRLR",
    "TRAILER": "TRLR",
}

ORDINAL_WORDS: Dict[str, str] = {
    "FIRST": "1",
    "SECOND": "2",
    "THIRD": "3",
    "FOURTH": "4",
    "FIFTH": "5",
    "SIXTH": "6",
    "SEVENTH": "7",
    "EIGHTH": "8",
    "NINTH": "9",
    "TENTH": "10",
    "ELEVENTH": "11",
    "TWELFTH": "12",
    "THIRTEENTH": "13",
    "FOURTEENTH": "14",
    "FIFTEENTH": "15",
    "SIXTEENTH": "16",
    "SEVENTEENTH": "17",
    "EIGHTEENTH": "18",
    "NINETEENTH": "19",
    "TWENTIETH": "20",
}

HOUSE_NUMBER_PATTERN = re.compile(r"^(\d+)(?:-(\d+))?([A-Z])?$")
FRACTION_PATTERN = re.compile(r"^\d/\d$")
UNIT_FOLLOWUP_PATTERN = re.compile(r"^(?:\d+(?:[-/]\d+)?[A-Z]?|[A-Z]\d*|[A-Z]-?\d+)$")
ORDINAL_SUFFIX_PATTERN = re.compile(r"^(\d+)(?:ST|ND|RD|TH)$")
ZIP_CODE_PATTERN = re.compile(r"\b\d{5}(?:-\d{4})?\b")
TOKEN_PATTERN = re.compile(r"#|[A-Z0-9][A-Z0-9/\-]*")


def canonicalize_zip(value: Optional[str]) -> str:
    if not value:
        return ""
    match = re.search(r"\d{5}", str(value))
    if match:
        return match.group(0)
    return " ".join(str(value).strip().upper().split())


def normalize_direction(token: Optional[str]) -> str:
    if not token:
        return ""
    return DIRECTIONAL_NORMALIZATION.get(token.strip().upper(), token.strip().upper())


def normalize_street_type(token: Optional[str]) -> str:
    if not token:
        return ""
    cleaned = token.strip().upper().rstrip(".")
    return STREET_TYPE_ABBREVIATIONS.get(cleaned, cleaned)


def normalize_unit_designator(token: Optional[str]) -> str:
    if not token:
        return ""
    cleaned = token.strip().upper().rstrip(".")
    return UNIT_DESIGNATORS.get(cleaned, cleaned)


def normalize_state(token: Optional[str]) -> str:
    if not token:
        return ""
    token = " ".join(token.strip().upper().replace(".", "").split())
    if token in US_STATE_ABBREVIATIONS:
        return token
    return US_STATE_NAMES.get(token, token)


def normalize_ordinal(token: str) -> str:
    if token in ORDINAL_WORDS:
        return ORDINAL_WORDS[token]
    suffix_match = ORDINAL_SUFFIX_PATTERN.fullmatch(token)
    if suffix_match:
        return suffix_match.group(1)
    return token


def clean_text(value: Optional[str]) -> str:
    """Upper-case, drop apostrophes and collapse whitespace."""
    if not value:
        return ""
    text = str(value).upper().replace("'", "").replace("’", "")
    text = re.sub(r"(\d)\s*-\s*(\d)", r"\1-\2", text)
    return " ".join(text.split())


def tokenize(value: Optional[str]) -> list[str]:
    return TOKEN_PATTERN.findall(clean_text(value))


def normalize_city(value: Optional[str]) -> str:
    return " ".join(tokenize(value))
