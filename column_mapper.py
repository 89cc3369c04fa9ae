"""
Column mapping of tabularized records into an output schema.

A mapping table is an ordered list of field specifications. Each one is
evaluated independently against every input record:

- ``Rename``: copy a field under its own name
- ``MappedField``: copy one source field (trying name variations in order)
  under a new key, optionally as a number, through a formatter, with a
  default value or with row exclusion when the value is missing
- ``ComputedField``: derive a number from one or more source columns

A record that any field excludes is dropped from the output.
"""
import enum
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from tabularizer import Record

logger = logging.getLogger(__name__)

OutputValue = Union[str, float, int, None]
Formatter = Callable[[List[str]], OutputValue]
Operation = Callable[[List[List[float]]], Optional[float]]

_NON_NUMERIC = re.compile(r"[^0-9.,-]")
_LEADING_NUMBER = re.compile(r"-?[\d.,]*\d")
_FLOAT_PREFIX = re.compile(r"-?\d*\.?\d+")


@dataclass(frozen=True)
class Rename:
    """Copy the value of ``name`` to the output under the same key."""
    name: str

    def candidate_names(self) -> List[str]:
        return [self.name]

    @property
    def output_key(self) -> str:
        return self.name


@dataclass(frozen=True)
class MappedField:
    """
    Copy one source field to ``translated``.

    Attributes:
        original: Primary source column name
        translated: Output key
        variations: Alternate source names, tried in order after ``original``
        exclude_row_when_null: Drop the row when the resolved value is None
        is_number: Parse the value as a number, dropping the row on failure
        is_currency: Same as ``is_number``; the cleaner handles currency text
        format: Called with the collected string values of every present candidate
        default_value: Used when the field resolves to nothing
    """
    original: str
    translated: str
    variations: Tuple[str, ...] = ()
    exclude_row_when_null: bool = False
    is_number: bool = False
    is_currency: bool = False
    format: Optional[Formatter] = None
    default_value: OutputValue = None

    def candidate_names(self) -> List[str]:
        return [self.original, *self.variations]

    @property
    def output_key(self) -> str:
        return self.translated

    @property
    def numeric(self) -> bool:
        return self.is_number or self.is_currency


@dataclass(frozen=True)
class ComputedField:
    """
    Derive ``result`` from the numeric values of ``columns``.

    ``operation`` receives the values regrouped into rows, see
    :func:`group_numeric_columns`.
    """
    result: str
    columns: Tuple[str, ...]
    operation: Operation
    variations: Mapping[str, Sequence[str]] = field(default_factory=dict)
    default_value: Optional[float] = None

    def candidate_names(self, column: str) -> List[str]:
        return [column, *self.variations.get(column, ())]

    @property
    def output_key(self) -> str:
        return self.result


FieldSpec = Union[Rename, MappedField, ComputedField]


def field_from_config(config: Union[str, Mapping[str, Any], FieldSpec]) -> FieldSpec:
    """
    Build a field specification from a bare name or a plain dict.

    Dicts use the camelCase keys of the JSON mapping tables: ``original``,
    ``translated``, ``variations``, ``excludeWhenNull`` (or
    ``excludeRowWhenNull``), ``isNumber``, ``isCurrency``, ``format``,
    ``defaultValue`` for mapped fields and ``result``, ``columns``,
    ``variations``, ``operation``, ``defaultValue`` for computed fields.

    Raises:
        ValueError: If the dict matches no field variant
    """
    if isinstance(config, (Rename, MappedField, ComputedField)):
        return config
    if isinstance(config, str):
        return Rename(config)

    if "result" in config and "operation" in config:
        return ComputedField(
            result=config["result"],
            columns=tuple(config.get("columns", ())),
            operation=config["operation"],
            variations={name: tuple(names) for name, names in config.get("variations", {}).items()},
            default_value=config.get("defaultValue"),
        )
    if "original" in config:
        return MappedField(
            original=config["original"],
            translated=config.get("translated", config["original"]),
            variations=tuple(config.get("variations", ())),
            exclude_row_when_null=bool(config.get("excludeRowWhenNull", config.get("excludeWhenNull", False))),
            is_number=bool(config.get("isNumber", False)),
            is_currency=bool(config.get("isCurrency", False)),
            format=config.get("format"),
            default_value=config.get("defaultValue"),
        )
    raise ValueError(f"Unrecognized field specification: {sorted(config)}")


def clean_currency_value(value: Any) -> Optional[float]:
    """
    Parse a cell as a number, tolerating currency symbols and comma decimals.

    Everything except digits, ``.``, ``,`` and ``-`` is stripped and only the
    leading number is kept, so unit suffixes (``"12,50 p/st."``), dash
    notation (``"€ 10,-"``) and ranges (``"10,50 - 20,00"``) read as their
    first amount. Within that number, with both separators present the one
    appearing last is the decimal separator and the other is dropped as
    digit grouping; a remaining comma becomes the decimal point. The longest
    valid float prefix is parsed, so ``"1.2.3"`` reads as 1.2.

    Examples:
        >>> clean_currency_value("€ 1.234,56")
        1234.56
        >>> clean_currency_value("12,50 p/st.")
        12.5
        >>> clean_currency_value("abc") is None
        True

    Returns:
        Optional[float]: The number, or None if the value is not a valid number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        leading = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", str(value)).strip())
        if leading is None:
            return None
        cleaned = leading.group()
        if "." in cleaned and "," in cleaned:
            if cleaned.rfind(".") < cleaned.rfind(","):
                cleaned = cleaned.replace(".", "")
            else:
                cleaned = cleaned.replace(",", "")
        prefix = _FLOAT_PREFIX.match(cleaned.replace(",", ".", 1))
        if prefix is None:
            return None
        number = float(prefix.group())
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def group_numeric_columns(columns: Sequence[Sequence[float]]) -> List[List[float]]:
    """
    Regroup per-column value lists into rows by position.

    Row ``i`` holds the ``i``-th value of every column that has one, so
    shorter columns contribute to fewer rows.

    >>> group_numeric_columns([[1.0, 2.0], [3.0]])
    [[1.0, 3.0], [2.0]]
    """
    longest = max((len(values) for values in columns), default=0)
    return [
        [values[position] for values in columns if position < len(values)]
        for position in range(longest)
    ]


class FieldState(enum.Enum):
    UNRESOLVED = "unresolved"
    FOUND = "found"
    ACCEPTED = "accepted"
    EXCLUDED_BY_NULL = "excluded_by_null"
    EXCLUDED_BY_PARSE_FAILURE = "excluded_by_parse_failure"


@dataclass
class FieldResolution:
    """Outcome of resolving one Rename or MappedField against a record."""
    state: FieldState = FieldState.UNRESOLVED
    value: OutputValue = None
    source_name: Optional[str] = None
    values_to_format: List[str] = field(default_factory=list)

    @property
    def excluded(self) -> bool:
        return self.state in (FieldState.EXCLUDED_BY_NULL, FieldState.EXCLUDED_BY_PARSE_FAILURE)

    def found(self, name: str, value: OutputValue) -> None:
        if self.state is FieldState.UNRESOLVED:
            self.state = FieldState.FOUND
            self.source_name = name
            self.value = value

    def accept(self, value: OutputValue) -> None:
        self.value = value
        if not self.excluded:
            self.state = FieldState.ACCEPTED

    def exclude(self, state: FieldState) -> None:
        # The first exclusion reason sticks.
        if not self.excluded:
            self.state = state


def resolve_field(record: Mapping[str, Any], spec: Union[Rename, MappedField]) -> FieldResolution:
    """
    Resolve a Rename or MappedField against one record.

    Candidate names are tried in declared order and only names present as
    keys count, whatever their value. Numeric fields and plain fields stop at
    the first present candidate; formatted fields collect the trimmed string
    value of every present candidate and hand them to the formatter.

    Args:
        record: Input record
        spec: Field to resolve

    Returns:
        FieldResolution: Final state with the accepted value
    """
    resolution = FieldResolution()
    mapped = spec if isinstance(spec, MappedField) else None
    formatter = mapped.format if mapped else None

    for name in spec.candidate_names():
        if name not in record:
            continue
        value = record[name]
        resolution.found(name, value)

        if mapped and mapped.exclude_row_when_null and value is None:
            resolution.exclude(FieldState.EXCLUDED_BY_NULL)

        if mapped and mapped.numeric:
            number = clean_currency_value(value)
            if number is None:
                resolution.exclude(FieldState.EXCLUDED_BY_PARSE_FAILURE)
            else:
                resolution.accept(number)
            break

        if isinstance(value, str):
            resolution.values_to_format.append(value.strip())

        if formatter is None:
            resolution.accept(value.strip() if isinstance(value, str) else value)
            break

    if formatter is not None:
        resolution.accept(formatter(resolution.values_to_format or [""]))

    return resolution


def _is_blank(value: OutputValue) -> bool:
    return value is None or value == ""


def _write_resolved_field(output: Dict[str, OutputValue], spec: Union[Rename, MappedField], resolution: FieldResolution) -> None:
    default = spec.default_value if isinstance(spec, MappedField) else None

    if isinstance(spec, MappedField) and spec.format is not None:
        value = resolution.value
        output[spec.output_key] = default if _is_blank(value) and default is not None else value
        return

    if resolution.state is not FieldState.ACCEPTED:
        # Unresolved, or excluded: the row is dropped so only the default matters.
        if default is not None:
            output[spec.output_key] = default
        return

    value = resolution.value
    output[spec.output_key] = default if _is_blank(value) and default is not None else value


def compute_field(record: Mapping[str, Any], spec: ComputedField) -> float:
    """
    Evaluate a computed field against one record.

    For each declared column every present, non-null candidate value that
    parses as a number is kept. The per-column lists are regrouped by
    :func:`group_numeric_columns` and handed to ``spec.operation``. With no
    numbers at all, or when the operation yields None or NaN, the field falls
    back to ``spec.default_value`` or 0. A computed result of 0 is kept as is.
    """
    fallback = spec.default_value if spec.default_value is not None else 0

    numeric_columns = []
    for column in spec.columns:
        numbers = []
        for name in spec.candidate_names(column):
            if record.get(name) is None:
                continue
            number = clean_currency_value(record[name])
            if number is not None:
                numbers.append(number)
        numeric_columns.append(numbers)

    grouped = group_numeric_columns(numeric_columns)
    if not grouped:
        return fallback

    try:
        result = spec.operation(grouped)
    except (ArithmeticError, ValueError, TypeError) as e:
        logger.warning(
            f"Computed field '{spec.result}' failed, using fallback",
            extra={"field": spec.result, "error": str(e), "error_type": type(e).__name__}
        )
        return fallback

    if result is None or (isinstance(result, float) and math.isnan(result)):
        return fallback
    return result


def map_row(record: Mapping[str, Any], fields: Sequence[FieldSpec]) -> Optional[Dict[str, OutputValue]]:
    """
    Apply every field specification to one record.

    Returns:
        Optional[Dict[str, OutputValue]]: The output record, or None when a
            field excluded the row
    """
    output: Dict[str, OutputValue] = {}
    excluded = False

    for spec in fields:
        if isinstance(spec, ComputedField):
            output[spec.output_key] = compute_field(record, spec)
        elif isinstance(spec, (Rename, MappedField)):
            resolution = resolve_field(record, spec)
            if resolution.excluded:
                excluded = True
            _write_resolved_field(output, spec, resolution)
        else:
            raise TypeError(f"Unsupported field specification: {type(spec).__name__}")

    return None if excluded else output


def _map_records(records: Sequence[Mapping[str, Any]], fields: Sequence[FieldSpec]) -> List[Dict[str, OutputValue]]:
    mapped = []
    for record in records:
        row = map_row(record, fields)
        if row is not None:
            mapped.append(row)
    return mapped


def map_columns(
    records: Union[Mapping[str, Sequence[Record]], Sequence[Record]],
    fields: Sequence[Union[str, Mapping[str, Any], FieldSpec]],
) -> Union[Dict[str, List[Dict[str, OutputValue]]], List[Dict[str, OutputValue]]]:
    """
    Map tabularized records through a field-specification table.

    The input shape is preserved: a flat list gives a flat list, records
    grouped by sheet give the same sheets (possibly with empty lists).
    Excluded rows are dropped; the order of the remaining rows is kept.

    Args:
        records: Output of :func:`tabularizer.tabularize`
        fields: Field specifications, bare names or config dicts

    Returns:
        Mapped records in the same shape as ``records``
    """
    specs = [field_from_config(spec) for spec in fields]

    if isinstance(records, Mapping):
        result = {sheet_name: _map_records(rows, specs) for sheet_name, rows in records.items()}
        total_in = sum(len(rows) for rows in records.values())
        total_out = sum(len(rows) for rows in result.values())
    else:
        result = _map_records(records, specs)
        total_in, total_out = len(records), len(result)

    logger.info(
        f"Mapped {total_out} of {total_in} rows",
        extra={"field_count": len(specs), "dropped_rows": total_in - total_out}
    )
    return result
