# tests/quotes/test_fetcher.py
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from fx_monitor.exceptions import FetchError
from fx_monitor.quotes.fetcher import RoboforexClient, parse_payload, strip_jsonp
from fx_monitor.quotes.models import Bar

PAYLOAD = '{"Status": 200, "OHLC": [{"l": 1.081, "h": 1.092, "s": 1.085, "e": 1.09}]}'


def mock_session(status: int = 200, body: str = "") -> MagicMock:
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=body)

    session = MagicMock()
    session.get = AsyncMock(return_value=response)
    return session


def test_client_init():
    client = RoboforexClient()
    assert client.base_url == "https://price.roboforex.com"
    assert client.timeout == 5.0


async def test_fetch_daily_bar():
    client = RoboforexClient()
    client._session = mock_session(body=f"jsonp1700000000({PAYLOAD});")

    with patch("fx_monitor.quotes.fetcher.time.time", return_value=1700000000):
        bar = await client.fetch("eurusd", date(2024, 1, 3))

    assert bar == Bar(symbol="EURUSD", open=1.085, high=1.092, low=1.081, close=1.09)
    url = client._session.get.call_args.args[0]
    params = client._session.get.call_args.kwargs["params"]
    assert url == "https://price.roboforex.com/prime/2024/EURUSD/D1/b"
    assert params == {"jsonp": "jsonp1700000000", "from": 2, "to": 2}


async def test_fetch_http_error():
    client = RoboforexClient()
    client._session = mock_session(status=502)

    with pytest.raises(FetchError, match="HTTP 502"):
        await client.fetch("EURUSD", date(2024, 1, 3))


async def test_fetch_transport_error():
    client = RoboforexClient()
    session = MagicMock()
    session.get = AsyncMock(side_effect=aiohttp.ClientConnectionError("reset"))
    client._session = session

    with pytest.raises(FetchError, match="Request failed"):
        await client.fetch("EURUSD", date(2024, 1, 3))


async def test_fetch_timeout():
    client = RoboforexClient()
    session = MagicMock()
    session.get = AsyncMock(side_effect=TimeoutError())
    client._session = session

    with pytest.raises(FetchError):
        await client.fetch("EURUSD", date(2024, 1, 3))


async def test_fetch_requires_session():
    client = RoboforexClient()

    with pytest.raises(RuntimeError):
        await client.fetch("EURUSD", date(2024, 1, 3))


def test_strip_jsonp():
    assert strip_jsonp(f"  cb1({PAYLOAD});\n", "cb1") == PAYLOAD
    assert strip_jsonp(PAYLOAD, "cb1") == PAYLOAD


@pytest.mark.parametrize(
    "body, match",
    [
        ("not json", "Can't decode"),
        ('{"Status": 404, "OHLC": []}', "not ok"),
        ('{"Status": 200, "OHLC": []}', "No quotes"),
        ('{"Status": 200}', "No quotes"),
        ('{"Status": 200, "OHLC": [{"l": 1.0, "h": 1.1}]}', "Malformed"),
        ('{"Status": 200, "OHLC": [{"l": 0, "h": 1.1, "s": 1.0, "e": 1.05}]}', "Not valid"),
        ("[1, 2]", "Unexpected"),
    ],
)
def test_parse_payload_errors(body, match):
    with pytest.raises(FetchError, match=match):
        parse_payload("EURUSD", f"cb({body});", "cb")
