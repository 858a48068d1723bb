"""Plain-text message builders for replies and scheduled alerts."""

from typing import List

from .analysis import AdvancedAnalysis, AnalysisResult, SentimentSummary, TrendAnalysis

BULLISH_EMOJI = "\U0001f4c8"
BEARISH_EMOJI = "\U0001f4c9"
NEUTRAL_EMOJI = "➖"
STRONG_BUY_EMOJI = "\U0001f7e2"
STRONG_SELL_EMOJI = "\U0001f534"
LIST_EMOJI = "\U0001f4cb"
NEWS_EMOJI = "\U0001f4f0"

DISCLAIMER = "This is not financial advice. Trade at your own risk."

# below the 4096 character message limit, leaving room for a prefix
MAX_MESSAGE_LENGTH = 4000


def clip(text: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def verdict_emoji(verdict: str) -> str:
    """Return an emoji for a trend or recommendation ``verdict``."""
    if verdict == "strong buy":
        return STRONG_BUY_EMOJI
    if verdict == "strong sell":
        return STRONG_SELL_EMOJI
    if "bull" in verdict or "buy" in verdict:
        return BULLISH_EMOJI
    if "bear" in verdict or "sell" in verdict:
        return BEARISH_EMOJI
    return NEUTRAL_EMOJI


def _trade_setup_lines(result: AdvancedAnalysis) -> List[str]:
    setup = result.trade_setup
    if setup is None:
        return []
    lines = [
        "",
        "Trade setup:",
        f"- Entry: {setup.entry_price}",
        f"- Stop-loss: {setup.stop_loss}",
        f"- Take-profit: {setup.take_profit}",
    ]
    if setup.confirmation_signal:
        lines.append(f"- Confirmation: {setup.confirmation_signal}")
    lines += [
        "",
        "Key levels:",
        f"- Support: {setup.support_zone}",
        f"- Resistance: {setup.resistance_zone}",
    ]
    return lines


def format_trend(symbol: str, result: TrendAnalysis) -> str:
    return clip(
        f"{verdict_emoji(result.trend)} {symbol}: {result.trend.upper()} "
        f"(confidence {result.confidence:.0%})\n\n{result.reason}"
    )


def format_advanced(
    symbol: str, timeframes: List[str], result: AdvancedAnalysis
) -> str:
    lines = [
        f"{verdict_emoji(result.ai_recommendation)} {symbol} "
        f"[{', '.join(timeframes)}]: {result.ai_recommendation.upper()}",
        f"Trend: {result.overall_trend} (confidence {result.confidence:.0%})",
        f"Sentiment: {result.market_sentiment} | Risk: {result.risk_level}",
        "",
        result.comprehensive_analysis,
        "",
        f"Prediction: {result.price_prediction}",
    ]
    indicators = result.indicators
    if indicators is not None:
        for name, value in (
            ("RSI", indicators.rsi),
            ("MACD", indicators.macd),
            ("EMA", indicators.ema),
        ):
            if value:
                lines.append(f"{name}: {value}")
    lines += _trade_setup_lines(result)
    lines += ["", f"Reasoning: {result.reasoning_summary}", "", DISCLAIMER]
    return clip("\n".join(lines))


def format_signal_alert(symbol: str, result: AnalysisResult) -> str:
    """Return the scheduled alert text for a verdict change on ``symbol``."""
    lines = [
        f"{symbol} trading signal: {result.verdict.upper()}",
        "",
        f"Reasoning: {result.rationale}",
    ]
    if isinstance(result, AdvancedAnalysis):
        lines += _trade_setup_lines(result)
    lines += ["", DISCLAIMER]
    return clip("\n".join(lines))


def format_subscriptions(symbols: List[str]) -> str:
    if not symbols:
        return (
            "You are not subscribed to any coins yet. "
            "Use /subscribe <COIN> to start."
        )
    return f"{LIST_EMOJI} Your current subscriptions:\n- " + "\n- ".join(symbols)


def format_sentiment(symbol: str, result: SentimentSummary) -> str:
    return clip(
        f"{NEWS_EMOJI} {symbol} market sentiment\n\n{result.sentiment_summary}"
    )
