"""Decision aggregator — merges strategy, position management and sizing.

Produces exactly one ``TradingInstruction`` per cycle, hold cycles
included, from a market and account snapshot.
"""

from dataclasses import asdict, dataclass

from trendpulse.broker.models import AccountSnapshot, Candle, MarketSnapshot, Position
from trendpulse.config import Config
from trendpulse.risk.position_sizer import calculate_contracts
from trendpulse.risk.trailing_stop import calculate_stop_update, estimate_mark_price
from trendpulse.strategy.models import Action, CandleData
from trendpulse.strategy.signals import evaluate_signal

PRICE_DECIMALS = 2


@dataclass(frozen=True)
class TradingInstruction:
    """The sole output of the decision engine.

    Numeric fields are exchange-formatted strings; ``"0"`` means unset.
    ``take_profit`` is always ``"0"``: profit is taken by the trailing stop.
    """

    action: Action
    size: str
    leverage: str
    stop_loss: str
    take_profit: str
    reason: str
    is_up_trend: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def to_candle_data(candles: list[Candle]) -> list[CandleData]:
    return [CandleData(c.time, c.open, c.high, c.low, c.close, c.volume) for c in candles]


def _format_price(price: float) -> str:
    return f"{price:.{PRICE_DECIMALS}f}" if price > 0 else "0"


def build_instruction(
    market: MarketSnapshot,
    account: AccountSnapshot,
    config: Config,
) -> TradingInstruction:
    """Run strategy → position management → sizing for one snapshot.

    Position management only runs when a position is open and the strategy
    holds; its proposal turns the action into ``"update_tpsl"``.  Sizing
    only runs for ``"buy"`` / ``"sell"``.
    """
    trend_candles = to_candle_data(market.trend_candles)
    entry_candles = to_candle_data(market.entry_candles)
    position = account.position_for(config.instrument_id)

    analysis = evaluate_signal(
        trend_candles,
        entry_candles,
        position.side if position else None,
    )

    action = analysis.action
    stop_loss = _format_price(analysis.stop_loss)
    reason = analysis.reason

    if position is not None and analysis.action == "hold":
        proposal = _manage_position(position, entry_candles, config)
        if proposal is not None:
            action = "update_tpsl"
            stop_loss = _format_price(proposal.stop_loss)
            reason = proposal.reason

    size = "0"
    if action in ("buy", "sell"):
        size = str(
            calculate_contracts(
                available_equity=account.balance.available_equity,
                entry_price=_entry_price(market, entry_candles),
                stop_loss=float(stop_loss),
                contract_value=config.contract_value,
                risk_pct=config.risk_per_trade_pct,
                max_leverage=config.max_leverage,
            )
        )

    return TradingInstruction(
        action=action,
        size=size,
        leverage=config.leverage,
        stop_loss=stop_loss,
        take_profit="0",
        reason=reason,
        is_up_trend=analysis.is_up_trend,
    )


def _manage_position(position: Position, entry_candles: list[CandleData], config: Config):
    mark = estimate_mark_price(
        position.side,
        position.average_price,
        position.size,
        position.unrealized_pnl,
        config.contract_value,
    )
    return calculate_stop_update(
        side=position.side,
        entry_price=position.average_price,
        mark_price=mark,
        current_stop=position.stop_loss_price,
        recent_candles=entry_candles,
        price_decimals=PRICE_DECIMALS,
    )


def _entry_price(market: MarketSnapshot, entry_candles: list[CandleData]) -> float:
    """Last traded price, falling back to the newest entry-bar close."""
    if market.ticker is not None and market.ticker.last > 0:
        return market.ticker.last
    if entry_candles:
        return entry_candles[-1].close
    return 0.0
