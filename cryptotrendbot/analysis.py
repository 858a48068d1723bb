"""Trend classification through a Gemini generative model.

The model is asked for JSON matching one of the schemas below and its reply
is validated with pydantic. Callers that only care about the verdict use
the common ``verdict``/``confidence``/``rationale`` interface; the richer
fields of :class:`AdvancedAnalysis` are for the formatting layer.
"""

import dataclasses
import json
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Optional, Union

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import config
from .api import CandleSeries, Ticker


class AnalysisError(Exception):
    """Raised when the model fails to produce a valid analysis."""


class TradeSetup(BaseModel):
    model_config = ConfigDict(frozen=True)

    support_zone: str
    resistance_zone: str
    entry_price: str
    stop_loss: str
    take_profit: str
    confirmation_signal: Optional[str] = None
    breakout_analysis: Optional[str] = None


class Indicators(BaseModel):
    model_config = ConfigDict(frozen=True)

    rsi: Optional[str] = Field(None, description="RSI reading and interpretation")
    macd: Optional[str] = Field(None, description="MACD reading and interpretation")
    ema: Optional[str] = Field(None, description="EMA alignment and interpretation")


class TrendAnalysis(BaseModel):
    """Quick bullish/bearish classification from a ticker snapshot."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["trend"] = "trend"
    trend: Literal["bullish", "bearish", "neutral"]
    confidence: float = Field(ge=0, le=1)
    reason: str

    @property
    def verdict(self) -> str:
        return self.trend

    @property
    def rationale(self) -> str:
        return self.reason


class AdvancedAnalysis(BaseModel):
    """Multi-timeframe analysis built from candle data."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["advanced"] = "advanced"
    overall_trend: Literal[
        "strong bullish", "bullish", "neutral", "bearish", "strong bearish"
    ]
    confidence: float = Field(ge=0, le=1)
    comprehensive_analysis: str
    market_sentiment: Literal[
        "extremely bullish", "bullish", "neutral", "bearish", "extremely bearish"
    ]
    risk_level: Literal["low", "medium", "high"]
    price_prediction: str
    ai_recommendation: Literal["strong buy", "buy", "hold", "sell", "strong sell"]
    reasoning_summary: str
    trade_setup: Optional[TradeSetup] = None
    indicators: Optional[Indicators] = None
    timestamp: Optional[str] = None

    @property
    def verdict(self) -> str:
        return self.ai_recommendation

    @property
    def rationale(self) -> str:
        return self.reasoning_summary


AnalysisResult = Annotated[
    Union[TrendAnalysis, AdvancedAnalysis], Field(discriminator="kind")
]


class SentimentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    sentiment_summary: str


TREND_PROMPT = """You are an expert financial analyst for the cryptocurrency markets.
Analyze the market data for {symbol} and classify the trend as bullish, bearish
or neutral. Give a confidence level between 0 and 1 and a brief reason.

Market data (JSON):
{market_data}

Reply with a single JSON object matching this JSON schema:
{schema}
"""

ADVANCED_PROMPT = """You are an expert technical analyst for cryptocurrency markets.
Perform a multi-timeframe analysis for {symbol} from the candlestick data below.
Rows are [time, open, high, low, close, volume], most recent first.

{candles}

Synthesize all timeframes into one assessment rather than analysing each in
isolation. Cover the overall trend, support and resistance levels respected
across timeframes, volume and momentum (RSI, MACD, EMA), market sentiment,
risk and a short-to-mid-term price projection. Finish with one recommendation
('strong buy', 'buy', 'hold', 'sell' or 'strong sell'); reserve the strong
variants for high-conviction setups. Provide an actionable trade setup with
support and resistance zones, the event that would confirm the
recommendation, entry price, stop-loss and take-profit.

Reply with a single JSON object matching this JSON schema:
{schema}
"""

SENTIMENT_PROMPT = """You summarize market sentiment for cryptocurrencies.
Based on recent news and social media, summarize the current market sentiment
for {symbol} concisely, highlighting the key factors driving it.

Reply with a single JSON object matching this JSON schema:
{schema}
"""


def serialize_ticker(ticker: Ticker) -> str:
    return json.dumps(dataclasses.asdict(ticker))


def serialize_candles(series: CandleSeries, limit: Optional[int] = None) -> str:
    """Return ``series`` as a JSON array of rows, keeping the newest ``limit``."""
    limit = config.CANDLE_LIMIT if limit is None else limit
    return json.dumps([list(candle) for candle in series[:limit]])


def _schema(model: type) -> str:
    schema = model.model_json_schema()
    props = schema.get("properties", {})
    props.pop("kind", None)
    props.pop("timestamp", None)
    return json.dumps(schema)


class AnalysisGateway:
    """Send prompts to the generative model and validate its JSON replies."""

    def __init__(self, model: Any = None, *, timeout: Optional[float] = None) -> None:
        if model is None:
            if not config.GEMINI_API_KEY:
                raise RuntimeError("GEMINI_API_KEY not set")
            genai.configure(api_key=config.GEMINI_API_KEY)
            model = genai.GenerativeModel(
                config.GEMINI_MODEL,
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json"
                ),
            )
        self.model = model
        self.timeout = config.ANALYSIS_TIMEOUT if timeout is None else timeout

    async def _generate(self, prompt: str, name: str) -> Dict[str, Any]:
        try:
            response = await self.model.generate_content_async(
                prompt, request_options={"timeout": self.timeout}
            )
            text = response.text
        except (google_exceptions.GoogleAPIError, ValueError) as exc:
            raise AnalysisError(f"{name} generation failed: {exc}") from exc
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise AnalysisError(f"{name} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise AnalysisError(f"{name} returned {type(data).__name__}, not an object")
        return data

    async def analyze_trend(self, symbol: str, market_data: str) -> TrendAnalysis:
        prompt = TREND_PROMPT.format(
            symbol=symbol, market_data=market_data, schema=_schema(TrendAnalysis)
        )
        data = await self._generate(prompt, "trend analysis")
        data["kind"] = "trend"
        try:
            result = TrendAnalysis.model_validate(data)
        except ValidationError as exc:
            raise AnalysisError(f"trend analysis failed validation: {exc}") from exc
        config.logger.info(
            "trend analysis %s: %s (%.2f)", symbol, result.verdict, result.confidence
        )
        return result

    async def advanced_analyze(
        self, symbol: str, candles: Dict[str, str]
    ) -> AdvancedAnalysis:
        """Analyze ``candles`` mapping timeframe to serialized candle rows."""
        if not candles:
            raise AnalysisError("no candle data to analyze")
        sections = "\n".join(f"Timeframe {tf}:\n{rows}" for tf, rows in candles.items())
        prompt = ADVANCED_PROMPT.format(
            symbol=symbol, candles=sections, schema=_schema(AdvancedAnalysis)
        )
        data = await self._generate(prompt, "advanced analysis")
        data["kind"] = "advanced"
        data["timestamp"] = datetime.now(timezone.utc).strftime(
            "%a, %d %b %Y %H:%M:%S GMT"
        )
        try:
            result = AdvancedAnalysis.model_validate(data)
        except ValidationError as exc:
            raise AnalysisError(f"advanced analysis failed validation: {exc}") from exc
        config.logger.info(
            "advanced analysis %s: %s (%.2f)", symbol, result.verdict, result.confidence
        )
        return result

    async def summarize_sentiment(self, symbol: str) -> SentimentSummary:
        prompt = SENTIMENT_PROMPT.format(
            symbol=symbol, schema=_schema(SentimentSummary)
        )
        data = await self._generate(prompt, "sentiment summary")
        try:
            return SentimentSummary.model_validate(data)
        except ValidationError as exc:
            raise AnalysisError(f"sentiment summary failed validation: {exc}") from exc
