"""FX escrow settlement: typed-data construction, signing and delivery orchestration."""

__version__ = "0.1.0"
