"""
Field-specification tables, one per document type.

Tables are static configuration; ``FIELD_TABLES`` lists the document types
the upload endpoint accepts.
"""
import re
from typing import Dict, List, Optional, Tuple

from column_mapper import ComputedField, FieldSpec, MappedField, Rename

VAT_RATE = 0.21

# Countries where the house number is written before the street name
NUMBER_FIRST_COUNTRIES = {"AU", "CA", "FR", "GB", "IE", "LU", "US"}

_NUMBER_FIRST = re.compile(r"^(\d+[\w/-]*)\s+(.+)$")
_NUMBER_LAST = re.compile(r"^(.+?)\s+(\d+[\w/-]*)$")
_COUNTRY_CODE = re.compile(r"^[A-Za-z]{2}$")


def _flatten(values: List[List[float]]) -> List[float]:
    return [value for row in values for value in row]


def vat_amount(values: List[List[float]]) -> float:
    """VAT over every value of the grouped rows."""
    return sum(value * VAT_RATE for value in _flatten(values))


def total_including_vat(values: List[List[float]]) -> float:
    """Sum of every value of the grouped rows plus VAT."""
    total = sum(_flatten(values))
    return total + total * VAT_RATE


def split_street_line(line: str, country_code: str = "") -> Tuple[str, str]:
    """
    Split an address line into street and house number.

    >>> split_street_line("Hoofdstraat 12a", "NL")
    ('Hoofdstraat', '12a')
    >>> split_street_line("221B Baker Street", "GB")
    ('Baker Street', '221B')
    """
    line = line.strip()
    if country_code.strip().upper() in NUMBER_FIRST_COUNTRIES:
        match = _NUMBER_FIRST.match(line)
        if match:
            return match.group(2), match.group(1)
    else:
        match = _NUMBER_LAST.match(line)
        if match:
            return match.group(1), match.group(2)
    return line, ""


def _street_parts(values: List[str]) -> Tuple[str, str]:
    # The address line comes first; a trailing two-letter value is the country code
    values = [value for value in values if value]
    country_code = ""
    if len(values) > 1 and _COUNTRY_CODE.match(values[-1]):
        country_code = values.pop()
    if not values or _COUNTRY_CODE.match(values[0]):
        return "", ""
    return split_street_line(values[0], country_code)


def format_street(values: List[str]) -> Optional[str]:
    street, _ = _street_parts(values)
    return street or None


def format_house_number(values: List[str]) -> Optional[str]:
    _, number = _street_parts(values)
    return number or None


PRICE_LIST_FIELDS: List[FieldSpec] = [
    MappedField(
        original="Algemene prijzen",
        translated="description",
        variations=(
            "Algemene EPDM prijzen",
            "Materiaal:",
            "Materiaal",
            "Loodgieter en materialen",
            "Vaste prijzen lekdetectie",
            "Ventilatie prijzen vast",
            "Slotenmakenmaker plaats prijzen",
            "Materieel",
            "Onderaanneming",
        ),
        exclude_row_when_null=True,
    ),
    MappedField(original="tarief per:", translated="per", variations=("Eenheid",)),
    MappedField(
        original="verkoop prijs Excl.",
        translated="retailPriceEx",
        variations=("verkoop prijs", "verkoop prijs excl."),
        is_number=True,
    ),
    MappedField(
        original="Inkoop materialen",
        translated="purchasePrice",
        variations=("Inkoop", "totaal inkoop"),
        is_number=True,
    ),
    ComputedField(
        result="purchasePriceVat",
        columns=("Inkoop materialen",),
        variations={"Inkoop materialen": ("Inkoop", "totaal inkoop")},
        operation=vat_amount,
    ),
    ComputedField(
        result="totalPurchasePrice",
        columns=("Inkoop materialen",),
        variations={"Inkoop materialen": ("Inkoop", "totaal inkoop")},
        operation=total_including_vat,
    ),
    ComputedField(
        result="retailPriceVat",
        columns=("verkoop prijs Excl.",),
        variations={"verkoop prijs Excl.": ("verkoop prijs excl.", "verkoop prijs")},
        operation=vat_amount,
    ),
    ComputedField(
        result="totalPrice",
        columns=("verkoop prijs Excl.",),
        variations={"verkoop prijs Excl.": ("verkoop prijs excl.", "verkoop prijs")},
        operation=total_including_vat,
    ),
]

ADDRESS_FIELDS: List[FieldSpec] = [
    MappedField(original="Naam", translated="name", variations=("Bedrijfsnaam",), exclude_row_when_null=True),
    MappedField(original="Straat", translated="street", variations=("Adres", "Landcode"), format=format_street),
    MappedField(original="Straat", translated="houseNumber", variations=("Adres", "Landcode"), format=format_house_number),
    MappedField(original="Plaats", translated="city", variations=("Woonplaats", "Stad")),
    MappedField(original="Landcode", translated="country", default_value="NL"),
    Rename("Email"),
]

FIELD_TABLES: Dict[str, List[FieldSpec]] = {
    "price_list": PRICE_LIST_FIELDS,
    "addresses": ADDRESS_FIELDS,
}


def get_field_table(document_type: str) -> List[FieldSpec]:
    """
    Look up the field table for a document type.

    Raises:
        KeyError: If no table is registered under ``document_type``
    """
    try:
        return FIELD_TABLES[document_type]
    except KeyError:
        raise KeyError(f"Unknown document type: {document_type}") from None
