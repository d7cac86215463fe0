"""
Read-only escrow calls.

`get_maker_net_balances` asks the escrow what a maker would deposit or
receive per token if the given trades were net settled, which is what a
maker checks before signing a `makerNetDeliver` permit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import httpx
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_bytes, to_checksum_address

from ...providers.rpc import JsonRpcError, RpcProvider
from ..errors import ContractRejection, ServiceUnavailable
from .calldata import encode_parameters
from .operations import MAKER_NET_BALANCES
from .resolver import normalize_trade_ids

logger = logging.getLogger(__name__)


@dataclass
class NetBalance:
    token: str
    amount: int

    @property
    def owed(self) -> bool:
        return self.amount < 0

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "amount": str(self.amount)}


async def get_maker_net_balances(
    rpc: RpcProvider,
    contract_address: str,
    trade_ids: Sequence[Any],
) -> List[NetBalance]:
    """Net per-token balances of a maker across `trade_ids`.

    Raises:
        InvalidFundingModeCombination: empty, duplicate or malformed trade ids
        ContractRejection: the call reverted or returned undecodable data
        ServiceUnavailable: the node could not be reached
    """
    ids = normalize_trade_ids(trade_ids)
    spec = MAKER_NET_BALANCES
    data = spec.selector + encode_parameters(spec.abi_types, [ids]).hex()

    try:
        result = await rpc.call({"to": contract_address, "data": data})
    except JsonRpcError as exc:
        raise ContractRejection(
            exc.to_dict(),
            message=f"{spec.function_name} reverted: {exc.message}",
            backend=rpc.name,
        ) from exc
    except httpx.HTTPError as exc:
        raise ServiceUnavailable(rpc.name, f"RPC node unavailable: {exc}") from exc

    try:
        tokens, amounts = decode(list(spec.output_types), to_bytes(hexstr=result or "0x"))
    except (DecodingError, ValueError) as exc:
        raise ContractRejection(
            {"result": result},
            message=f"{spec.function_name} returned undecodable data: {exc}",
            backend=rpc.name,
        ) from exc
    if len(tokens) != len(amounts):
        raise ContractRejection(
            {"result": result},
            message=f"{spec.function_name} returned {len(tokens)} tokens and {len(amounts)} balances",
            backend=rpc.name,
        )

    logger.debug(f"Net balances for {len(ids)} trade(s): {len(tokens)} token(s)")
    return [NetBalance(to_checksum_address(token), amount) for token, amount in zip(tokens, amounts)]
