"""
Settlement

Operation selection, ABI parameter assembly, calldata encoding, delivery
backends for the FxEscrow funding calls and read-only escrow views.
"""

from .abi_params import (
    ContractCall,
    assemble_breach,
    assemble_consideration,
    assemble_delivery,
    assemble_maker_details,
    assemble_permit,
    assemble_record_trade,
    assemble_taker_details,
    trade_id_param,
)
from .calldata import encode_call, encode_parameters
from .delivery import (
    DELIVERY_BACKENDS,
    ChainDeliveryBackend,
    CustodialContractBackend,
    DeliveryBackend,
    DeliveryReceipt,
    DeliveryRequest,
    RelayerFundingBackend,
    build_delivery_backend,
)
from .operations import (
    BREACH,
    MAKER_NET_BALANCES,
    OPERATION_SPECS,
    RECORD_TRADE,
    Cardinality,
    FundingMode,
    OperationSpec,
    Role,
    SettlementOperation,
    selector_from_signature,
)
from .resolver import DECISION_TABLE, normalize_trade_ids, parse_funding_mode, parse_role, resolve
from .views import NetBalance, get_maker_net_balances

__all__ = [
    # Operations
    "BREACH",
    "MAKER_NET_BALANCES",
    "OPERATION_SPECS",
    "RECORD_TRADE",
    "Cardinality",
    "FundingMode",
    "OperationSpec",
    "Role",
    "SettlementOperation",
    "selector_from_signature",
    # Resolver
    "DECISION_TABLE",
    "normalize_trade_ids",
    "parse_funding_mode",
    "parse_role",
    "resolve",
    # Assembly
    "ContractCall",
    "assemble_breach",
    "assemble_consideration",
    "assemble_delivery",
    "assemble_maker_details",
    "assemble_permit",
    "assemble_record_trade",
    "assemble_taker_details",
    "trade_id_param",
    "encode_call",
    "encode_parameters",
    # Delivery
    "DELIVERY_BACKENDS",
    "ChainDeliveryBackend",
    "CustodialContractBackend",
    "DeliveryBackend",
    "DeliveryReceipt",
    "DeliveryRequest",
    "RelayerFundingBackend",
    "build_delivery_backend",
    # Views
    "NetBalance",
    "get_maker_net_balances",
]
