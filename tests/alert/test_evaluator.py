# tests/alert/test_evaluator.py
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fakes import FakeClock, FakeFetcher, utc

from fx_monitor.alert.evaluator import AlertEvaluator
from fx_monitor.alert.levels import build_delta_pair
from fx_monitor.quotes.holder import QuoteHolder
from fx_monitor.storage.alert_store import AlertStore
from fx_monitor.storage.models import AlertLevel, Direction, UserSettings

USER = 7


@pytest.fixture
async def store(tmp_path: Path):
    s = AlertStore(tmp_path / "db.json")
    await s.init()
    return s


@pytest.fixture
def clock():
    return FakeClock(utc(2024, 3, 10, 10, 0))


@pytest.fixture
def fetcher():
    return FakeFetcher({"EURUSD": 1.1, "BTCUSD": 65000.0})


@pytest.fixture
async def holder(fetcher, clock):
    h = QuoteHolder(fetcher, ["EURUSD", "BTCUSD"], jitter_seconds=0, clock=clock)
    await h.update(2)
    return h


@pytest.fixture
def outbox():
    mock = MagicMock()
    mock.post.return_value = True
    return mock


async def move(holder: QuoteHolder, fetcher: FakeFetcher, clock: FakeClock, **closes: float):
    fetcher.closes.update(closes)
    clock.advance(61)
    await holder.update(2)


def sent(outbox) -> list[tuple[int, str]]:
    return [(c.args[0].chat_id, c.args[0].text) for c in outbox.post.call_args_list]


async def test_plain_level_fires_once(holder, store, outbox):
    await store.add(USER, [AlertLevel(symbol="EURUSD", price=1.2, direction=Direction.ABOVE_CURRENT)])
    evaluator = AlertEvaluator(holder, store, outbox)

    assert await evaluator.check_levels() == 1
    assert sent(outbox) == [(USER, "🔔 Alert: EURUSD < 1.20000\nCurrent: 1.10000")]
    assert await store.list_alerts(USER) == []

    assert await evaluator.check_levels() == 0


async def test_level_not_reached(holder, store, outbox):
    await store.add(
        USER,
        [
            AlertLevel(symbol="EURUSD", price=1.2, direction=Direction.BELOW_CURRENT),
            AlertLevel(symbol="EURUSD", price=1.0, direction=Direction.ABOVE_CURRENT),
        ],
    )
    evaluator = AlertEvaluator(holder, store, outbox)

    assert await evaluator.check_levels() == 0
    outbox.post.assert_not_called()
    assert len(await store.list_alerts(USER)) == 2


async def test_delta_pair_is_renewed_around_new_close(holder, store, outbox, fetcher, clock):
    pair = build_delta_pair("EURUSD", 1.1, 50)
    await store.add(USER, pair)
    await store.set_settings(USER, UserSettings(deltas={"EURUSD": 50}))
    evaluator = AlertEvaluator(holder, store, outbox)

    await move(holder, fetcher, clock, EURUSD=1.1006)
    assert await evaluator.check_levels() == 1

    assert sent(outbox) == [(USER, "🔔 Alert: EURUSD > 1.10050\nCurrent: 1.10060")]
    alerts = await store.list_alerts(USER)
    assert [(a.price, a.direction) for a in alerts] == [
        (1.1011, Direction.BELOW_CURRENT),
        (1.1001, Direction.ABOVE_CURRENT),
    ]
    assert alerts[0].correlation_id == alerts[1].correlation_id
    assert alerts[0].correlation_id != pair[0].correlation_id


async def test_delta_pair_without_setting_is_not_renewed(holder, store, outbox, fetcher, clock):
    await store.add(USER, build_delta_pair("EURUSD", 1.1, 50))
    evaluator = AlertEvaluator(holder, store, outbox)

    await move(holder, fetcher, clock, EURUSD=1.099)

    assert await evaluator.check_levels() == 1
    assert await store.list_alerts(USER) == []


async def test_missing_quote_is_skipped(holder, store, outbox):
    await store.add(
        USER,
        [
            AlertLevel(symbol="USDJPY", price=200, direction=Direction.ABOVE_CURRENT, precision=3),
            AlertLevel(symbol="EURUSD", price=1.05, direction=Direction.BELOW_CURRENT),
        ],
    )
    evaluator = AlertEvaluator(holder, store, outbox)

    assert await evaluator.check_levels() == 1
    assert [a.symbol for a in await store.list_alerts(USER)] == ["USDJPY"]


async def test_levels_checked_per_user(holder, store, outbox):
    level = AlertLevel(symbol="EURUSD", price=1.05, direction=Direction.BELOW_CURRENT)
    await store.add(1, [level])
    await store.add(2, [level])
    evaluator = AlertEvaluator(holder, store, outbox)

    assert await evaluator.check_levels() == 2
    assert sorted(chat_id for chat_id, _ in sent(outbox)) == [1, 2]


async def test_momentum_goes_to_every_user(holder, store, outbox, fetcher, clock):
    await store.set_settings(1, UserSettings(deltas={"EURUSD": 10}))
    await store.set_settings(2, UserSettings(deltas={"EURUSD": 10}))
    evaluator = AlertEvaluator(holder, store, outbox)

    await move(holder, fetcher, clock, EURUSD=1.1006, BTCUSD=65499.0)

    assert await evaluator.check_momentum() == 2
    messages = sent(outbox)
    assert sorted(chat_id for chat_id, _ in messages) == [1, 2]
    assert all(text.startswith("📈 Diff: EURUSD +") for _, text in messages)


async def test_momentum_crypto_threshold(holder, store, outbox, fetcher, clock):
    await store.set_settings(1, UserSettings(deltas={"EURUSD": 10}))
    evaluator = AlertEvaluator(holder, store, outbox)

    await move(holder, fetcher, clock, BTCUSD=64500.0)

    assert await evaluator.check_momentum() == 1
    assert sent(outbox)[0][1].startswith("📉 Diff: BTCUSD -500 ")


async def test_momentum_without_users(holder, store, outbox, fetcher, clock):
    evaluator = AlertEvaluator(holder, store, outbox)
    await move(holder, fetcher, clock, EURUSD=1.2)

    assert await evaluator.check_momentum() == 0
    outbox.post.assert_not_called()
