from cryptotrendbot.analysis import AdvancedAnalysis, SentimentSummary, TradeSetup
from cryptotrendbot.formatting import (
    BEARISH_EMOJI,
    BULLISH_EMOJI,
    MAX_MESSAGE_LENGTH,
    NEUTRAL_EMOJI,
    NEWS_EMOJI,
    STRONG_BUY_EMOJI,
    STRONG_SELL_EMOJI,
    format_advanced,
    format_sentiment,
    format_signal_alert,
    verdict_emoji,
)


def make_analysis(**overrides):
    fields = dict(
        overall_trend="strong bullish",
        confidence=0.9,
        comprehensive_analysis="Breakout on volume.",
        market_sentiment="extremely bullish",
        risk_level="high",
        price_prediction="Towards 55k.",
        ai_recommendation="strong buy",
        reasoning_summary="All timeframes aligned.",
        trade_setup=TradeSetup(
            support_zone="49k-50k",
            resistance_zone="55k",
            entry_price="51k",
            stop_loss="48.5k",
            take_profit="55k",
            confirmation_signal="4hr close above 52.5k",
        ),
    )
    fields.update(overrides)
    return AdvancedAnalysis(**fields)


def test_verdict_emoji():
    assert verdict_emoji("strong buy") == STRONG_BUY_EMOJI
    assert verdict_emoji("strong sell") == STRONG_SELL_EMOJI
    assert verdict_emoji("bullish") == BULLISH_EMOJI
    assert verdict_emoji("sell") == BEARISH_EMOJI
    assert verdict_emoji("hold") == NEUTRAL_EMOJI


def test_signal_alert_includes_trade_setup():
    text = format_signal_alert("BTC", make_analysis())
    assert text.startswith("BTC trading signal: STRONG BUY")
    assert "Reasoning: All timeframes aligned." in text
    assert "- Entry: 51k" in text
    assert "- Support: 49k-50k" in text
    assert "Confirmation: 4hr close above 52.5k" in text


def test_signal_alert_without_trade_setup():
    text = format_signal_alert("BTC", make_analysis(trade_setup=None))
    assert "Trade setup" not in text


def test_advanced_message_is_clipped():
    text = format_advanced(
        "BTC", ["5m"], make_analysis(comprehensive_analysis="x" * 10000)
    )
    assert len(text) == MAX_MESSAGE_LENGTH
    assert text.endswith("…")


def test_format_sentiment():
    text = format_sentiment("ETH", SentimentSummary(sentiment_summary="Calm."))
    assert "ETH market sentiment" in text and text.endswith("Calm.")


def test_long_sentiment_is_clipped():
    text = format_sentiment("ETH", SentimentSummary(sentiment_summary="y" * 5000))
    assert len(text) == MAX_MESSAGE_LENGTH
    assert text.startswith(NEWS_EMOJI + " ETH market sentiment")
