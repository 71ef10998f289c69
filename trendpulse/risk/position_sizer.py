"""Position sizing — pure math, no I/O.

Converts a per-trade risk budget and stop distance into a whole number of
contracts, capped by a maximum notional leverage.
"""

import math

# Guards floor() against values like 49.999999999 from float division.
_EPSILON = 1e-9


def calculate_contracts(
    available_equity: float,
    entry_price: float,
    stop_loss: float,
    contract_value: float = 0.1,
    risk_pct: float = 5.0,
    max_leverage: float = 20.0,
) -> int:
    """Calculate order size in contracts.

    Formula::

        risk_amount = available_equity × (risk_pct / 100)
        quantity    = risk_amount / |entry_price - stop_loss|   (underlying)
        contracts   = max(1, floor(quantity / contract_value))

    A zero or undefined stop distance sizes to 1 contract. The result is
    then capped so that ``contracts × contract_value × entry_price`` does not
    exceed ``available_equity × max_leverage``.

    Args:
        available_equity: Equity available for margin (quote currency).
        entry_price: Expected fill price (last traded price).
        stop_loss: Proposed stop-loss price.
        contract_value: Underlying units per contract.
        risk_pct: Percentage of available equity to risk (e.g. 5.0 for 5 %).
        max_leverage: Notional cap as a multiple of available equity.

    Returns:
        Contract count, never negative.

    Raises:
        ValueError: If *contract_value* is non-positive.
    """
    if contract_value <= 0:
        raise ValueError(f"contract_value must be positive, got {contract_value}")

    risk_amount = max(available_equity, 0.0) * (risk_pct / 100.0)
    stop_distance = abs(entry_price - stop_loss)

    if not math.isfinite(stop_distance) or stop_distance == 0:
        contracts = 1
    else:
        quantity = risk_amount / stop_distance
        contracts = max(1, math.floor(quantity / contract_value + _EPSILON))

    if entry_price > 0:
        max_notional = max(available_equity, 0.0) * max_leverage
        unit_notional = contract_value * entry_price
        if contracts * unit_notional > max_notional:
            contracts = math.floor(max_notional / unit_notional + _EPSILON)

    return max(contracts, 0)
