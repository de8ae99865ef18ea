"""Romanian counties, CNP county codes and ID card series.

Used by cross-field validation to compare the card series (which reflects
the issuing county) with the place of birth and the CNP county code.
"""

import unicodedata
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class County:
    """A Romanian county (judet)."""

    code: str
    name: str
    seat: str
    cnp_codes: tuple[int, ...]
    series: tuple[str, ...]


COUNTIES: tuple[County, ...] = (
    County("AB", "Alba", "Alba Iulia", (1,), ("AX",)),
    County("AR", "Arad", "Arad", (2,), ("AR", "ZR")),
    County("AG", "Argeș", "Pitești", (3,), ("AS", "AZ")),
    County("BC", "Bacău", "Bacău", (4,), ("XC", "ZC")),
    County("BH", "Bihor", "Oradea", (5,), ("XH", "ZH")),
    County("BN", "Bistrița-Năsăud", "Bistrița", (6,), ("XB",)),
    County("BT", "Botoșani", "Botoșani", (7,), ("XT",)),
    County("BV", "Brașov", "Brașov", (8,), ("BV", "ZV")),
    County("BR", "Brăila", "Brăila", (9,), ("XR",)),
    County("BZ", "Buzău", "Buzău", (10,), ("XZ",)),
    County("CS", "Caraș-Severin", "Reșița", (11,), ("KS",)),
    County("CJ", "Cluj", "Cluj-Napoca", (12,), ("CJ", "KX")),
    County("CT", "Constanța", "Constanța", (13,), ("KT",)),
    County("CV", "Covasna", "Sfântu Gheorghe", (14,), ("KV",)),
    County("DB", "Dâmbovița", "Târgoviște", (15,), ("DD",)),
    County("DJ", "Dolj", "Craiova", (16,), ("DX", "DZ")),
    County("GL", "Galați", "Galați", (17,), ("GL", "ZL")),
    County("GJ", "Gorj", "Târgu Jiu", (18,), ("GZ",)),
    County("HR", "Harghita", "Miercurea Ciuc", (19,), ("HR",)),
    County("HD", "Hunedoara", "Deva", (20,), ("HD",)),
    County("IL", "Ialomița", "Slobozia", (21,), ("SZ",)),
    County("IS", "Iași", "Iași", (22,), ("IS", "MX", "MZ")),
    County("IF", "Ilfov", "București", (23,), ("IF",)),
    County("MM", "Maramureș", "Baia Mare", (24,), ("MM", "XM")),
    County("MH", "Mehedinți", "Drobeta-Turnu Severin", (25,), ("MH",)),
    County("MS", "Mureș", "Târgu Mureș", (26,), ("MS",)),
    County("NT", "Neamț", "Piatra Neamț", (27,), ("NT",)),
    County("OT", "Olt", "Slatina", (28,), ("OT",)),
    County("PH", "Prahova", "Ploiești", (29,), ("PH", "PX")),
    County("SM", "Satu Mare", "Satu Mare", (30,), ("SM",)),
    County("SJ", "Sălaj", "Zalău", (31,), ("SX",)),
    County("SB", "Sibiu", "Sibiu", (32,), ("SB",)),
    County("SV", "Suceava", "Suceava", (33,), ("SV", "XV")),
    County("TR", "Teleorman", "Alexandria", (34,), ("TR",)),
    County("TM", "Timiș", "Timișoara", (35,), ("TM", "TZ")),
    County("TL", "Tulcea", "Tulcea", (36,), ("TC",)),
    County("VS", "Vaslui", "Vaslui", (37,), ("VS",)),
    County("VL", "Vâlcea", "Râmnicu Vâlcea", (38,), ("VX",)),
    County("VN", "Vrancea", "Focșani", (39,), ("VN",)),
    County(
        "B",
        "București",
        "București",
        (40, 41, 42, 43, 44, 45, 46, 47, 48),
        ("RD", "RK", "RR", "RT", "RX", "DP", "DR", "DT"),
    ),
    County("CL", "Călărași", "Călărași", (51,), ("KL",)),
    County("GR", "Giurgiu", "Giurgiu", (52,), ("GG",)),
)

_BY_CODE = {county.code: county for county in COUNTIES}
_BY_SERIES = {series: county for county in COUNTIES for series in county.series}
_BY_CNP_CODE = {code: county for county in COUNTIES for code in county.cnp_codes}


def fold(text: str) -> str:
    """Uppercase and strip diacritics (Ș -> S, Ă -> A) for loose matching."""
    decomposed = unicodedata.normalize("NFKD", text.upper())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def get_county_by_code(code: str) -> Optional[County]:
    return _BY_CODE.get(code.strip().upper())


def county_for_series(series: str) -> Optional[County]:
    """Issuing county of an ID card series, if the series is known."""
    return _BY_SERIES.get(series.strip().upper())


def county_for_cnp_code(code: int) -> Optional[County]:
    return _BY_CNP_CODE.get(code)


def county_for_place(place: str) -> Optional[County]:
    """Best-effort county of a place of birth.

    Looks for an explicit ``JUD. XX`` abbreviation first, then for county
    names and county seats as whole words. Returns None when the place
    cannot be mapped unambiguously.
    """
    folded = fold(place)
    tokens = folded.replace(".", " ").replace(",", " ").split()

    for index, token in enumerate(tokens[:-1]):
        if token in ("JUD", "JUDETUL") and tokens[index + 1] in _BY_CODE:
            return _BY_CODE[tokens[index + 1]]

    padded = f" {' '.join(tokens)} "
    matches = {
        county.code
        for county in COUNTIES
        if f" {fold(county.name).replace('-', ' ')} " in padded.replace("-", " ")
        or f" {fold(county.seat).replace('-', ' ')} " in padded.replace("-", " ")
    }
    # Ilfov's seat is București; prefer the capital itself
    if matches == {"B", "IF"}:
        matches = {"B"}
    if len(matches) == 1:
        return _BY_CODE[matches.pop()]
    return None


def is_locality_in_county(place: str, county_code: str) -> bool:
    county = county_for_place(place)
    return county is not None and county.code == county_code.strip().upper()
