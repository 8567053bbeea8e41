"""Product catalog CSV decode and encode.

Decoding is tolerant: the separator and line ending are sniffed, header names
are matched against an alias table, and prices may carry currency glyphs and
locale separators. Row problems are collected as `RowError` values while the
decode carries on; only an empty file or an unresolvable mandatory column
aborts it.
"""

import csv
import io
import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import partial
from itertools import chain
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, TextIO, Tuple, Union

from proposalcrm.core.errors import EmptyFileError, MissingColumnError
from proposalcrm.schemas.imports import ParseBatch, ParseResult, RowError
from proposalcrm.schemas.product import ProductRecord

logger = logging.getLogger(__name__)

Source = Union[str, TextIO]

CANONICAL_COLUMNS = ("code", "name", "description", "category", "list_price", "partner_price")
CSV_HEADER = ("code", "name", "description", "category", "listPrice", "partnerPrice")
MANDATORY_COLUMNS = ("code", "name", "list_price")

DEFAULT_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "code": (
        "code", "sku", "product id", "product code", "product_id", "product_code",
        "item code", "item id", "item_id", "id",
    ),
    "name": (
        "name", "product name", "title", "product_name", "item name", "item_name", "product", "item",
    ),
    "description": (
        "description", "desc", "details", "specs", "specification", "product description",
        "product_description", "desc.", "long description", "long_description",
    ),
    "category": (
        "category", "type", "group", "cat", "product category", "product_category",
        "product type", "product_type", "department",
    ),
    "list_price": (
        "listprice", "list price", "list_price", "retail price", "selling price", "sell price",
        "public price", "sales price", "customer price", "price usd", "msrp", "retail", "price",
    ),
    "partner_price": (
        "partnerprice", "partner price", "partner_price", "dealer price", "dealer_price",
        "wholesale price", "wholesale_price", "buy price", "buying price", "cost price",
        "supplier price", "wholesale", "partner", "cost",
    ),
}

HEADER_VOCABULARY = ("product", "code", "name", "description", "price", "category", "id", "sku", "cost", "partner")
HEADER_SCAN_ROWS = 10
MIN_SUBSTRING_ALIAS = 3

CURRENCY_GLYPHS = "$€£¥₹₽¢₩₴₦₺"
_PRICE_NOISE = re.compile("[" + re.escape(CURRENCY_GLYPHS) + r"\s'\u00a0\u202f]")
_PRICE_SHAPE = re.compile(r"^-?[0-9.,]*[0-9][0-9.,]*$")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")

SAMPLE_SIZE = 64 * 1024
CHUNK_SIZE = 64 * 1024
DEFAULT_BATCH_SIZE = 5000
CENT = Decimal("0.01")


def detect_line_ending(sample: str) -> str:
    if "\r\n" in sample:
        return "\r\n"
    if "\r" in sample:
        return "\r"
    return "\n"


def detect_separator(header_line: str) -> str:
    for separator in ("\t", ";", ","):
        if separator in header_line:
            return separator
    return ","


def is_likely_header(fields: Sequence[str]) -> bool:
    line = " ".join(fields).lower()
    return sum(1 for term in HEADER_VOCABULARY if term in line) >= 2


def _normalize_header(value: str) -> str:
    return value.strip().lstrip("\ufeff").strip().lower()


def resolve_columns(header: Sequence[str], aliases: Dict[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES) -> Dict[str, int]:
    """Map logical column names to physical indexes.

    Exact alias matches win over substring matches, and each physical column
    is claimed at most once.
    """
    names = [_normalize_header(h) for h in header]
    claimed: Dict[int, str] = {}
    resolved: Dict[str, int] = {}

    for logical in CANONICAL_COLUMNS:
        wanted = [a.lower() for a in aliases.get(logical, ())]
        for alias in wanted:
            index = next((i for i, n in enumerate(names) if n == alias and i not in claimed), None)
            if index is not None:
                resolved[logical] = index
                claimed[index] = logical
                break

    for logical in CANONICAL_COLUMNS:
        if logical in resolved:
            continue
        wanted = [a.lower() for a in aliases.get(logical, ()) if len(a) >= MIN_SUBSTRING_ALIAS]
        for alias in wanted:
            index = next((i for i, n in enumerate(names) if alias in n and i not in claimed), None)
            if index is not None:
                resolved[logical] = index
                claimed[index] = logical
                break

    missing = [logical for logical in MANDATORY_COLUMNS if logical not in resolved]
    if missing:
        raise MissingColumnError(missing)
    logger.debug("Resolved CSV columns %s from header %s", resolved, list(header))
    return resolved


def parse_price(text: Optional[str]) -> Optional[Decimal]:
    """Parse a loosely formatted price, or return None if it is not a number.

    When both `,` and `.` appear the last one is the decimal separator. A
    separator repeated several times is a thousands separator. A single
    separator is decimal.
    """
    if text is None:
        return None
    cleaned = _PRICE_NOISE.sub("", text)
    if not cleaned or not _PRICE_SHAPE.match(cleaned):
        return None

    has_comma, has_dot = "," in cleaned, "." in cleaned
    if has_comma and has_dot:
        decimal_sep = "," if cleaned.rfind(",") > cleaned.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        cleaned = cleaned.replace(thousands_sep, "")
        if cleaned.count(decimal_sep) > 1:
            return None
        cleaned = cleaned.replace(decimal_sep, ".")
    elif has_comma or has_dot:
        sep = "," if has_comma else "."
        if cleaned.count(sep) > 1:
            cleaned = cleaned.replace(sep, "")
        else:
            cleaned = cleaned.replace(sep, ".")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def decode_bytes(data: bytes) -> str:
    """Decode raw upload bytes: UTF-8 (BOM aware), then cp1252, then latin-1."""
    if data.startswith(b"\xef\xbb\xbf"):
        return data.decode("utf-8-sig")
    for encoding in ("utf-8", "cp1252"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            logger.debug("CSV payload is not valid %s", encoding)
    return data.decode("latin-1")


def _iter_lines(chunks: Iterable[str]) -> Iterator[str]:
    """Split text chunks into lines that keep their terminators."""
    pending = ""
    for chunk in chunks:
        pending += chunk
        start = 0
        for match in _LINE_BREAK.finditer(pending):
            if match.group() == "\r" and match.end() == len(pending):
                # may be the first half of a CRLF split across chunks
                break
            yield pending[start:match.end()]
            start = match.end()
        pending = pending[start:]
    if pending:
        yield pending


def _is_blank(row: Sequence[str]) -> bool:
    return all(not field.strip() for field in row)


def _looks_like_data(row: Sequence[str]) -> bool:
    """True when the row reads as a product in the canonical positional order."""
    price_index = CANONICAL_COLUMNS.index("list_price")
    if len(row) <= price_index or not row[0].strip():
        return False
    return parse_price(row[price_index]) is not None


def _quoted_fields(raw: str, separator: str) -> List[bool]:
    """Flag, per field of one raw CSV record, whether it opened with a quote."""
    flags = [False]
    at_start = True
    in_quotes = False
    for char in raw:
        if in_quotes:
            in_quotes = char != '"'
            continue
        if char == separator:
            flags.append(False)
            at_start = True
            continue
        if char == '"':
            in_quotes = True
            if at_start:
                flags[-1] = True
        at_start = False
    return flags


class ProductCSVDecoder:
    """Streaming decoder; detection results are available after the first batch is requested."""

    def __init__(
        self,
        source: Source,
        aliases: Dict[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.aliases = aliases
        self.batch_size = batch_size
        self.separator = ","
        self.line_ending = "\n"
        self.header_row: Optional[int] = None
        self.columns: Dict[str, int] = {}

        if isinstance(source, str):
            self._sample = source[:SAMPLE_SIZE]
            self._chunks: Iterable[str] = [source]
        else:
            self._sample = source.read(SAMPLE_SIZE)
            self._chunks = chain([self._sample], iter(partial(source.read, CHUNK_SIZE), ""))

    def _detect(self) -> None:
        sample = self._sample.lstrip("\ufeff")
        first_line = next((line for line in _LINE_BREAK.split(sample) if line.strip()), None)
        if first_line is None:
            raise EmptyFileError()
        self.line_ending = detect_line_ending(sample)
        self.separator = detect_separator(first_line)
        logger.info("CSV detected separator=%r line_ending=%r", self.separator, self.line_ending)

    def _rows(self) -> Iterator[Tuple[int, List[str], List[bool]]]:
        """Yield (line number, fields, quoted flags) for every record."""
        lines = _iter_lines(self._chunks)
        first = next(lines, None)
        if first is not None:
            lines = chain([first.lstrip("\ufeff")], lines)
        consumed: List[str] = []

        def recording(source: Iterator[str]) -> Iterator[str]:
            for line in source:
                consumed.append(line)
                yield line

        reader = csv.reader(recording(lines), delimiter=self.separator, quotechar='"', doublequote=True)
        for row in reader:
            quoted = _quoted_fields("".join(consumed), self.separator)
            consumed.clear()
            yield reader.line_num, row, quoted

    def _header_columns(self, row: List[str], first: bool) -> Optional[Dict[str, int]]:
        """Resolve a header candidate; only the first non-blank row may fail loudly."""
        try:
            return resolve_columns(row, self.aliases)
        except MissingColumnError:
            if first:
                raise
            logger.debug("Header-like row %r does not resolve; treating it as data", row)
            return None

    def _locate_header(self, rows: Iterator[Tuple[int, List[str], List[bool]]]) -> Tuple[list, List[RowError]]:
        """Consume rows up to the header; return leftover data rows and preamble errors.

        Scanning stops at the first row that already reads as a positional
        data row, so vocabulary inside product names never turns data into a
        header.
        """
        scanned = []
        for line_num, row, quoted in rows:
            if _is_blank(row):
                continue
            if not _looks_like_data(row) and is_likely_header(row):
                columns = self._header_columns(row, first=not scanned)
                if columns is not None:
                    self.header_row = line_num
                    self.columns = columns
                    preamble = [
                        RowError(row=n, code="preamble", message="Row before the header was ignored")
                        for n, _, _ in scanned
                    ]
                    logger.info("CSV header found on line %s", line_num)
                    return [], preamble
            scanned.append((line_num, row, quoted))
            if _looks_like_data(row) or len(scanned) >= HEADER_SCAN_ROWS:
                break

        if not scanned:
            raise EmptyFileError()
        self.columns = {logical: index for index, logical in enumerate(CANONICAL_COLUMNS)}
        logger.info("CSV has no header row; assuming columns %s", ", ".join(CSV_HEADER))
        return scanned, []

    def _to_record(self, line_num: int, row: List[str], quoted: List[bool], errors: List[RowError]) -> Optional[ProductRecord]:
        cols = self.columns
        needed = max(cols[c] for c in MANDATORY_COLUMNS)
        if len(row) <= needed:
            errors.append(RowError(row=line_num, code="short_row", message=f"Expected at least {needed + 1} fields, got {len(row)}"))
            return None

        def field(logical: str) -> str:
            # quoted text keeps its surrounding spaces
            index = cols.get(logical)
            if index is None or index >= len(row):
                return ""
            value = row[index]
            if index < len(quoted) and quoted[index]:
                return value
            return value.strip()

        code, name = field("code").strip(), field("name")
        if not code:
            errors.append(RowError(row=line_num, code="missing_code", message="Product code is empty"))
            return None
        if not name.strip():
            errors.append(RowError(row=line_num, code="missing_name", message=f"Product {code!r} has no name"))
            return None

        prices = {}
        for logical in ("list_price", "partner_price"):
            raw = field(logical).strip()
            value = parse_price(raw) if raw else Decimal("0")
            if value is None or value < 0:
                errors.append(
                    RowError(row=line_num, code="invalid_price", message=f"Invalid {logical} {raw!r}; imported as 0", skipped=False)
                )
                value = Decimal("0")
            prices[logical] = value

        return ProductRecord(
            code=code,
            name=name,
            description=field("description"),
            category=field("category"),
            list_price=prices["list_price"],
            partner_price=prices["partner_price"],
        )

    def batches(self) -> Iterator[ParseBatch]:
        self._detect()
        rows = self._rows()
        pending, preamble = self._locate_header(rows)

        index = 0
        batch = ParseBatch(index=index, errors=list(preamble))
        for line_num, row, quoted in chain(pending, rows):
            if _is_blank(row):
                continue
            batch.rows_read += 1
            record = self._to_record(line_num, row, quoted, batch.errors)
            if record is not None:
                batch.records.append(record)
            if batch.rows_read >= self.batch_size:
                yield batch
                index += 1
                batch = ParseBatch(index=index)
        if batch.rows_read or batch.errors or index == 0:
            yield batch


def iter_batches(
    source: Source,
    aliases: Dict[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[ParseBatch]:
    return ProductCSVDecoder(source, aliases, batch_size).batches()


def parse(source: Source, aliases: Dict[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES) -> ParseResult:
    decoder = ProductCSVDecoder(source, aliases)
    result = ParseResult()
    for batch in decoder.batches():
        result.records.extend(batch.records)
        result.errors.extend(batch.errors)
    result.separator = decoder.separator
    result.line_ending = decoder.line_ending
    result.header_row = decoder.header_row
    return result


def _escape(value: str, separator: str = ",") -> str:
    if separator in value or '"' in value or "\n" in value or "\r" in value or value != value.strip():
        return '"' + value.replace('"', '""') + '"'
    return value


def _price(value) -> str:
    return str(Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP))


def format_products(products: Iterable) -> str:
    """Encode products (records or ORM rows) in the canonical column order."""
    out = io.StringIO()
    out.write(",".join(CSV_HEADER) + "\n")
    for product in products:
        fields = [
            _escape(product.code or ""),
            _escape(product.name or ""),
            _escape(product.description or ""),
            _escape(product.category or ""),
            _price(product.list_price),
            _price(product.partner_price),
        ]
        out.write(",".join(fields) + "\n")
    return out.getvalue()
