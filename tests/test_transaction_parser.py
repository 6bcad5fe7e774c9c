import pytest

from income_planner.portfolio.transaction_parser import (
    FormatError,
    bind_columns,
    map_action,
    parse_number,
    parse_transactions,
)

BROKER_CSV = (
    "Date,Ticker,Type,Quantity,Price per share,Total Amount\n"
    "2024-01-02,AAPL,BUY - MARKET,10,$100.00,$1000.00\n"
    "2024-02-01,AAPL,SELL - MARKET,4,$110.00,$440.00\n"
    "2024-03-01,AAPL,DIVIDEND,,,$2.40\n"
    "2024-03-05,,CASH TOP-UP,,,$500\n"
)


def test_parse_simple_shape() -> None:
    result = parse_transactions("symbol,shares,buyPrice\naapl,10,100\nMSFT,5,200\n")
    assert result.shape == "simple"
    assert [item.ticker for item in result.transactions] == ["AAPL", "MSFT"]
    first = result.transactions[0]
    assert first.action == "BUY"
    assert first.quantity == 10
    assert first.price_per_unit == 100
    assert first.total_amount == 1000
    assert result.skipped == []


def test_parse_simple_shape_derives_price_from_total() -> None:
    result = parse_transactions("Symbol,Shares,Total Cost\nVZ,4,160\n")
    assert result.transactions[0].price_per_unit == 40
    assert result.transactions[0].total_amount == 160


def test_parse_broker_shape_keeps_file_order_and_actions() -> None:
    result = parse_transactions(BROKER_CSV)
    assert result.shape == "broker"
    assert [item.action for item in result.transactions] == ["BUY", "SELL", "DIVIDEND", "CASH"]
    buy, sell, dividend, cash = result.transactions
    assert buy.date == "2024-01-02"
    assert buy.total_amount == 1000.0
    assert sell.quantity == 4
    assert dividend.ticker == "AAPL"
    assert dividend.total_amount == 2.4
    assert cash.ticker == ""


def test_missing_columns_raise_format_error() -> None:
    with pytest.raises(FormatError) as excinfo:
        parse_transactions("name,amount\nfoo,1\n")
    assert excinfo.value.missing == ["symbol/ticker", "shares"]
    assert isinstance(excinfo.value, ValueError)


def test_broker_header_without_type_names_missing_column() -> None:
    with pytest.raises(FormatError) as excinfo:
        bind_columns(["Date", "Ticker", "Amount"])
    assert excinfo.value.missing == ["type"]


def test_empty_text_is_format_error() -> None:
    with pytest.raises(FormatError):
        parse_transactions("   \n")


def test_malformed_rows_are_skipped_not_raised() -> None:
    result = parse_transactions("symbol,shares,buyPrice\nAAPL,abc,100\n,5,10\nMSFT,2,50\n")
    assert [item.ticker for item in result.transactions] == ["MSFT"]
    assert [skip.row for skip in result.skipped] == [2, 3]
    assert "invalid shares" in result.skipped[0].reason
    assert result.skipped[1].reason == "missing symbol"


def test_semicolon_delimiter_and_bom() -> None:
    result = parse_transactions("\ufeffsymbol;shares;buyPrice\nVZ;3;40\n")
    assert result.transactions[0].ticker == "VZ"
    assert result.transactions[0].total_amount == 120


def test_parse_number_strips_noise() -> None:
    assert parse_number("$1,234.50") == 1234.5
    assert parse_number("(1,234.50)") == -1234.5
    assert parse_number("'42'") == 42
    assert parse_number("") is None
    assert parse_number("n/a") is None


def test_map_action() -> None:
    assert map_action("Buy - Market") == "BUY"
    assert map_action("SELL - LIMIT") == "SELL"
    assert map_action("Dividend") == "DIVIDEND"
    assert map_action("Cash withdrawal") == "CASH"
    assert map_action("Stock split") == "OTHER"


def test_blank_rows_are_recorded_with_source_line_numbers() -> None:
    result = parse_transactions("symbol,shares,buyPrice\nAAPL,10,100\n\n\nKO,abc,5\nMSFT,2,50\n")
    assert [item.ticker for item in result.transactions] == ["AAPL", "MSFT"]
    assert [(skip.row, skip.reason) for skip in result.skipped] == [
        (3, "blank row"),
        (4, "blank row"),
        (5, "invalid shares for KO"),
    ]


def test_row_with_extra_fields_keeps_following_line_numbers() -> None:
    result = parse_transactions("\nsymbol,shares,buyPrice\nAAPL,10,100\nKO,1,2,7,8\nVZ,abc,5\nMSFT,2,50\n\n")
    assert [item.ticker for item in result.transactions] == ["AAPL", "MSFT"]
    assert [(skip.row, skip.reason) for skip in result.skipped] == [
        (4, "unexpected field count"),
        (5, "invalid shares for VZ"),
    ]
    assert result.skipped[0].raw == "KO,1,2,7,8"


def test_parse_number_reads_scientific_notation() -> None:
    assert parse_number("1e3") == 1000
    assert parse_number("2.5E-1") == 0.25
    assert parse_number("($1.5e2)") == -150
    assert parse_number("1e400") is None
