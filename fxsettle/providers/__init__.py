"""Clients for the trade service, the custodial wallet API and EVM nodes."""

from .base import HttpProvider, Provider
from .custodial_wallet import CustodialWalletError, CustodialWalletProvider
from .rpc import JsonRpcError, RpcProvider
from .stablefx import StableFXProvider, get_stablefx_provider

__all__ = [
    "Provider",
    "HttpProvider",
    "CustodialWalletError",
    "CustodialWalletProvider",
    "JsonRpcError",
    "RpcProvider",
    "StableFXProvider",
    "get_stablefx_provider",
]
