# fx_monitor/notifier/formatter.py
from fx_monitor.alert.levels import MomentumResult
from fx_monitor.patterns.scanner import ScanResult
from fx_monitor.quotes.symbols import format_price
from fx_monitor.storage.models import AlertLevel

HELP_MESSAGE = """
📖 Commands

🔔 Levels
Add: /add EURUSD < 1.2550  (alert when price falls to 1.2550)
Add: /add EURUSD > 1.2550  (alert when price rises to 1.2550)

🗑 Delete
/del EURUSD > 1.2550
/del EURUSD
/del EUR
/del *
/del  (pick from keyboard)

📋 List
/ls
/ls USD

📏 Delta (points around current price, renewed after each hit)
/delta USDJPY 500
/delta USD 500
/delta 500

/help
"""


def help_text() -> str:
    return HELP_MESSAGE


def format_alert_line(alert: AlertLevel, close: float | None) -> str:
    current = format_price(alert.symbol, close) if close is not None else "n/a"
    suffix = " Δ" if alert.correlation_id else ""
    return f"{alert}{suffix} ({current})"


def format_level_alert(alert: AlertLevel, close: float) -> str:
    return f"🔔 Alert: {alert}\nCurrent: {format_price(alert.symbol, close)}"


def format_momentum(result: MomentumResult) -> str:
    arrow = "📈" if result.diff > 0 else "📉"
    return (
        f"{arrow} Diff: {result.symbol} {result.points:+d} ({result.diff:+.5f})\n"
        f"Previous: {format_price(result.symbol, result.previous)}\n"
        f"Current: {format_price(result.symbol, result.current)}"
    )


def format_patterns(result: ScanResult) -> str:
    lines = [f"🕯 {result.timeframe.value}"]
    for hit in result.hits:
        lines.append(f"{hit.symbol} - {hit.pattern.name.value} ({hit.pattern.sentiment.value})")
    return "\n".join(lines)
