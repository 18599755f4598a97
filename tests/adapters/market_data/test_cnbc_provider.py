from __future__ import annotations

import asyncio

import httpx

from adapters.market_data.cnbc import CnbcQuoteProvider


def _payload(last: str, change: str, change_pct: str) -> dict:
    return {"FormattedQuoteResult": {"FormattedQuote": [{"last": last, "change": change, "change_pct": change_pct}]}}


def test_mutual_fund_quote_is_parsed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["symbols"] == "FXAIX"
        assert request.url.params["output"] == "json"
        return httpx.Response(200, json=_payload("1,234.50", "+4.50", "+0.37%"))

    provider = CnbcQuoteProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    quotes = asyncio.run(provider.get_quotes(["FXAIX"]))

    quote = quotes["FXAIX"]
    assert quote.current_price == 1234.5
    assert quote.previous_close == 1230.0
    assert quote.change_percent == 0.37
    assert quote.source == "cnbc"


def test_unchanged_session_and_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        symbol = request.url.params["symbols"]
        if symbol == "SWVXX":
            return httpx.Response(200, json=_payload("1.00", "UNCH", "UNCH"))
        if symbol == "EMPTY":
            return httpx.Response(200, json={"FormattedQuoteResult": {"FormattedQuote": []}})
        return httpx.Response(500, text="boom")

    provider = CnbcQuoteProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    quotes = asyncio.run(provider.get_quotes(["SWVXX", "EMPTY", "BROKEN"]))

    assert set(quotes) == {"SWVXX"}
    assert quotes["SWVXX"].previous_close == 1.0
    assert quotes["SWVXX"].change_percent == 0
