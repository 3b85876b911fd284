"""Roboforex 日线报价客户端"""

import json
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import aiohttp

from fx_monitor.exceptions import FetchError
from fx_monitor.quotes.models import Bar
from fx_monitor.quotes.symbols import day_of_year, normalize

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/90.0.4430.72 Safari/537.36"
)


@dataclass
class RoboforexClient:
    """Fetches one daily OHLC bar per request from the Roboforex price feed"""

    base_url: str = "https://price.roboforex.com"
    timeout: float = 5.0
    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    async def init(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": USER_AGENT},
            )

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "RoboforexClient":
        await self.init()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _url(self, symbol: str, day: date) -> str:
        return f"{self.base_url}/prime/{day.year}/{symbol}/D1/b"

    async def fetch(self, symbol: str, day: date) -> Bar:
        """获取指定日期的日线

        Raises:
            FetchError: 网络错误、非 200 响应、无法解析或无效报价
        """
        if self._session is None:
            raise RuntimeError("Session not initialized. Call init() or use 'async with'.")

        symbol = normalize(symbol)
        callback = f"jsonp{int(time.time())}"
        index = day_of_year(day) - 1
        params = {"jsonp": callback, "from": index, "to": index}

        try:
            response = await self._session.get(self._url(symbol, day), params=params)
            if response.status != 200:
                response.release()
                raise FetchError(symbol, f"HTTP {response.status}")
            body = await response.text()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise FetchError(symbol, f"Request failed: {e!r}") from e

        return parse_payload(symbol, body, callback)


def strip_jsonp(body: str, callback: str) -> str:
    body = body.strip()
    prefix = f"{callback}("
    if body.startswith(prefix):
        body = body[len(prefix) :]
    if body.endswith(");"):
        body = body[:-2]
    elif body.endswith(")"):
        body = body[:-1]
    return body


def parse_payload(symbol: str, body: str, callback: str) -> Bar:
    raw = strip_jsonp(body, callback)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FetchError(symbol, f"Can't decode quote: {raw[:200]!r}") from e

    if not isinstance(data, dict):
        raise FetchError(symbol, f"Unexpected payload: {raw[:200]!r}")
    if data.get("Status") != 200:
        raise FetchError(symbol, f"Response is not ok: {raw[:200]!r}")

    ohlc = data.get("OHLC") or []
    if not ohlc:
        raise FetchError(symbol, f"No quotes: {raw[:200]!r}")

    first = ohlc[0]
    try:
        bar = Bar(
            symbol=symbol,
            open=float(first["s"]),
            high=float(first["h"]),
            low=float(first["l"]),
            close=float(first["e"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise FetchError(symbol, f"Malformed OHLC entry: {first!r}") from e

    if not bar.is_valid():
        raise FetchError(symbol, f"Not valid quote: {bar}")
    return bar
