"""
Funding-mode resolver.

Maps (role, funding mode, trade ids) onto exactly one settlement operation.
The table below is closed: an unlisted combination is rejected, and a new
operation is added here rather than by branching elsewhere.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple, Union

from ..encoding import parse_uint256
from ..errors import InvalidFundingModeCombination
from .operations import Cardinality, FundingMode, Role, SettlementOperation

logger = logging.getLogger(__name__)

DECISION_TABLE: Dict[Tuple[Role, FundingMode, Cardinality], SettlementOperation] = {
    (Role.TAKER, FundingMode.GROSS, Cardinality.SINGLE): SettlementOperation.TAKER_DELIVER,
    (Role.TAKER, FundingMode.GROSS, Cardinality.MULTIPLE): SettlementOperation.TAKER_BATCH_DELIVER,
    (Role.MAKER, FundingMode.GROSS, Cardinality.SINGLE): SettlementOperation.MAKER_DELIVER,
    (Role.MAKER, FundingMode.GROSS, Cardinality.MULTIPLE): SettlementOperation.MAKER_BATCH_DELIVER,
    (Role.MAKER, FundingMode.NET, Cardinality.MULTIPLE): SettlementOperation.MAKER_NET_DELIVER,
}


def parse_role(role: Union[Role, str]) -> Role:
    try:
        return Role(role.lower() if isinstance(role, str) else role)
    except ValueError:
        raise InvalidFundingModeCombination("role", f"Unknown role {role!r}") from None


def parse_funding_mode(mode: Union[FundingMode, str]) -> FundingMode:
    try:
        return FundingMode(mode.lower() if isinstance(mode, str) else mode)
    except ValueError:
        raise InvalidFundingModeCombination("fundingMode", f"Unknown funding mode {mode!r}") from None


def normalize_trade_ids(trade_ids: Sequence[Any]) -> List[int]:
    """Parse trade ids into uint256 ints, rejecting empty or duplicate sets."""
    if isinstance(trade_ids, (str, bytes)) or not trade_ids:
        raise InvalidFundingModeCombination("tradeIds", "At least one trade id is required")
    parsed: List[int] = []
    for value in trade_ids:
        try:
            number = parse_uint256(value)
        except (TypeError, ValueError) as exc:
            raise InvalidFundingModeCombination("tradeIds", f"Invalid trade id {value!r}: {exc}") from None
        if number in parsed:
            raise InvalidFundingModeCombination("tradeIds", f"Duplicate trade id {number}")
        parsed.append(number)
    return parsed


def resolve(
    role: Union[Role, str],
    funding_mode: Union[FundingMode, str],
    trade_ids: Sequence[Any],
) -> SettlementOperation:
    """Select the settlement operation for a funding attempt.

    Raises:
        InvalidFundingModeCombination: net funding requested by a taker, net
            funding of a single trade, or an empty/duplicate trade id set.
            `axis` names the offending input.
    """
    parsed_role = parse_role(role)
    mode = parse_funding_mode(funding_mode)
    ids = normalize_trade_ids(trade_ids)
    cardinality = Cardinality.SINGLE if len(ids) == 1 else Cardinality.MULTIPLE

    operation = DECISION_TABLE.get((parsed_role, mode, cardinality))
    if operation is None:
        if mode is FundingMode.NET and parsed_role is Role.TAKER:
            raise InvalidFundingModeCombination("role", "Net funding is only available to makers")
        raise InvalidFundingModeCombination("tradeIds", "Net funding requires at least two trade ids")

    logger.debug(f"Resolved {parsed_role.value}/{mode.value}/{len(ids)} trade(s) to {operation.value}")
    return operation
