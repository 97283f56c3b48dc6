"""Data module - Instruments and data loading"""

from .instrument import Instrument, coerce_instruments, display_label
from .loader import PriceLoader, LoadedData, load_sector_map

__all__ = [
    "Instrument",
    "coerce_instruments",
    "display_label",
    "PriceLoader",
    "LoadedData",
    "load_sector_map",
]
