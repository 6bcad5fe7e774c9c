"""Brokerage transaction file parsing.

Two header shapes are recognized:

* simple: ``symbol,shares,buyPrice,totalCost`` (every row is a purchase)
* broker export: Date/Ticker/Type/Quantity/Price per share/Total Amount in any
  column order, detected by the presence of ``ticker`` and ``type`` in the
  header.

Columns are bound once per import into a :class:`ColumnSchema`; rows are then
read through that schema. Malformed rows become :class:`RowSkip` entries and
never abort the import. Only a header without the mandatory columns raises
:class:`FormatError`.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from typing import Literal

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from income_planner.portfolio.models import Action, RowSkip, Transaction
from income_planner.services.base import normalize_symbol

LOGGER = logging.getLogger(__name__)

Shape = Literal["simple", "broker"]
NUMERIC_NOISE = re.compile(r"[^0-9.\-+]")
SCIENTIFIC = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)[eE][+-]?\d+")
CANDIDATE_DELIMITERS = (",", ";", "\t", "|")
# Stands in for a row with too many fields so record order keeps matching line order.
BAD_LINE_MARKER = "\x00unexpected-field-count"


class FormatError(ValueError):
    """The header does not expose the columns an import needs."""

    def __init__(self, missing: list[str], message: str | None = None) -> None:
        self.missing = missing
        super().__init__(message or f"Missing required column(s): {', '.join(missing)}")


@dataclass(frozen=True)
class ColumnSchema:
    shape: Shape
    ticker: str
    action: str | None = None
    date: str | None = None
    quantity: str | None = None
    price: str | None = None
    total: str | None = None


@dataclass
class ParseResult:
    transactions: list[Transaction]
    skipped: list[RowSkip] = field(default_factory=list)
    shape: Shape = "simple"


def _find_column(columns: list[str], *tokens: str) -> str | None:
    lowered = [(column, column.strip().lower()) for column in columns]
    for token in tokens:
        for column, text in lowered:
            if token in text:
                return column
    return None


def bind_columns(columns: list[str]) -> ColumnSchema:
    """Resolve header names into a typed schema, failing closed."""
    if not columns:
        raise FormatError(["header"], "File has no header row.")

    ticker = _find_column(columns, "ticker")
    action = _find_column(columns, "type")
    if ticker and action:
        return ColumnSchema(
            shape="broker",
            ticker=ticker,
            action=action,
            date=_find_column(columns, "date"),
            quantity=_find_column(columns, "quantity", "shares", "qty"),
            price=_find_column(columns, "price per share", "price"),
            total=_find_column(columns, "total amount", "total"),
        )

    symbol = _find_column(columns, "symbol", "ticker")
    shares = _find_column(columns, "shares", "share", "quantity", "qty")
    if symbol and shares:
        return ColumnSchema(
            shape="simple",
            ticker=symbol,
            quantity=shares,
            price=_find_column(columns, "buyprice", "buy price", "average price", "avg price", "price"),
            total=_find_column(columns, "totalcost", "total cost", "cost basis", "total"),
        )

    if ticker or action:
        missing = [name for name, column in (("ticker", ticker), ("type", action)) if not column]
    else:
        missing = [name for name, column in (("symbol/ticker", symbol), ("shares", shares)) if not column]
    raise FormatError(missing)


def parse_number(value: object) -> float | None:
    """Parse a numeric cell after stripping currency glyphs and quoting."""
    if value is None:
        return None
    text = str(value).strip().strip("'\"")
    if not text:
        return None
    negative = text.startswith("(") and text.endswith(")")
    compact = text.strip("()").replace(",", "").replace(" ", "").lstrip("$")
    clean = compact if SCIENTIFIC.fullmatch(compact) else NUMERIC_NOISE.sub("", text)
    if clean in {"", "-", "+", "."}:
        return None
    try:
        number = float(clean)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return -abs(number) if negative else number


def map_action(value: str) -> Action:
    text = value.strip().upper()
    if "BUY" in text:
        return "BUY"
    if "SELL" in text:
        return "SELL"
    if "DIVIDEND" in text:
        return "DIVIDEND"
    if any(token in text for token in ("CASH", "TOP-UP", "DEPOSIT", "WITHDRAW")):
        return "CASH"
    return "OTHER"


def _detect_delimiter(header_line: str) -> str:
    counts = {delimiter: header_line.count(delimiter) for delimiter in CANDIDATE_DELIMITERS}
    best = max(counts, key=lambda delimiter: counts[delimiter])
    return best if counts[best] > 0 else ","


def _read_frame(text: str, bad_lines: list[str]) -> tuple[pd.DataFrame, int]:
    """Read the text into a frame of strings, one record per line after the header.

    Returns the frame and the 1-based line number of the header. Blank lines
    are kept as empty records; lines with too many fields become
    :data:`BAD_LINE_MARKER` records and their raw text goes to ``bad_lines``.
    """
    lines = text.lstrip("\ufeff").splitlines()
    leading = next((index for index, line in enumerate(lines) if line.strip()), None)
    if leading is None:
        raise FormatError(["header"], "File is empty or has no header row.")
    while lines and not lines[-1].strip():
        lines.pop()
    body = "\n".join(lines[leading:]) + "\n"

    def _bad_line(fields: list[str]) -> list[str]:
        bad_lines.append(",".join(fields))
        return [BAD_LINE_MARKER]

    try:
        frame = pd.read_csv(
            io.StringIO(body),
            sep=_detect_delimiter(lines[leading]),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            skipinitialspace=True,
            engine="python",
            on_bad_lines=_bad_line,
        )
    except EmptyDataError as error:
        raise FormatError(["header"], "File is empty or has no header row.") from error
    except ParserError as error:
        raise FormatError(["header"], f"File could not be read as delimited text: {error}") from error
    return frame, leading + 1


def _cell(row: dict[str, str], column: str | None) -> str:
    if column is None:
        return ""
    value = row.get(column, "")
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def _parse_broker_row(row: dict[str, str], schema: ColumnSchema) -> Transaction | str:
    action = map_action(_cell(row, schema.action))
    ticker = normalize_symbol(_cell(row, schema.ticker))
    quantity = parse_number(_cell(row, schema.quantity))
    price = parse_number(_cell(row, schema.price))
    total = parse_number(_cell(row, schema.total))

    if action in {"BUY", "SELL", "DIVIDEND"} and not ticker:
        return f"missing ticker for {action} row"
    if action in {"BUY", "SELL"}:
        if quantity is None or quantity <= 0:
            return f"invalid quantity for {ticker}"
        if not price and not total:
            return f"missing price and total for {ticker}"
    return Transaction(
        date=_cell(row, schema.date) or None,
        ticker=ticker,
        action=action,
        quantity=abs(quantity or 0.0),
        price_per_unit=abs(price or 0.0),
        total_amount=total,
    )


def _parse_simple_row(row: dict[str, str], schema: ColumnSchema) -> Transaction | str:
    symbol = normalize_symbol(_cell(row, schema.ticker))
    shares = parse_number(_cell(row, schema.quantity))
    price = parse_number(_cell(row, schema.price))
    total = parse_number(_cell(row, schema.total))

    if not symbol:
        return "missing symbol"
    if shares is None or shares <= 0:
        return f"invalid shares for {symbol}"
    if not price and not total:
        return f"missing buy price and total cost for {symbol}"
    shares = abs(shares)
    if not total:
        total = shares * abs(price or 0.0)
    if not price:
        price = abs(total) / shares
    return Transaction(
        date=None,
        ticker=symbol,
        action="BUY",
        quantity=shares,
        price_per_unit=abs(price),
        total_amount=abs(total),
    )


def parse_transactions(text: str) -> ParseResult:
    """Parse delimited transaction text into ordered transactions."""
    skipped: list[RowSkip] = []
    bad_lines: list[str] = []
    frame, header_line = _read_frame(text, bad_lines)
    columns = [str(column) for column in frame.columns]
    schema = bind_columns(columns)
    parse_row = _parse_broker_row if schema.shape == "broker" else _parse_simple_row

    transactions: list[Transaction] = []
    pending_bad = iter(bad_lines)
    for idx, record in enumerate(frame.to_dict(orient="records")):
        row_num = header_line + idx + 1
        row = {str(key): _cell(record, key) for key in record}
        raw = ",".join(row.values())
        if row.get(columns[0]) == BAD_LINE_MARKER:
            skipped.append(RowSkip(row=row_num, reason="unexpected field count", raw=next(pending_bad, "")))
            continue
        if not any(row.values()):
            skipped.append(RowSkip(row=row_num, reason="blank row", raw=raw))
            continue
        parsed = parse_row(row, schema)
        if isinstance(parsed, str):
            skipped.append(RowSkip(row=row_num, reason=parsed, raw=raw))
            continue
        transactions.append(parsed)

    for skip in skipped:
        LOGGER.warning("row skipped: row=%s reason=%s raw=%s", skip.row, skip.reason, skip.raw)
    LOGGER.info(
        "transactions parsed: shape=%s rows=%s skipped=%s",
        schema.shape,
        len(transactions),
        len(skipped),
    )
    return ParseResult(transactions=transactions, skipped=skipped, shape=schema.shape)
