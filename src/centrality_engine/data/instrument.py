"""
Instrument model.

An instrument is one price series plus the metadata the network needs:
a display label and an optional sector tag.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

import pandas as pd

from ..core.constants import SYMBOL_SUFFIXES
from ..core.exceptions import GraphConstructionError


@dataclass(frozen=True, eq=False)
class Instrument:
    """Immutable input instrument for one analysis run."""
    symbol: str
    series: pd.Series
    label: Optional[str] = None
    sector: Optional[str] = None
    version: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.series, pd.Series):
            object.__setattr__(self, 'series', pd.Series(self.series, dtype=float))
        if self.label is None:
            object.__setattr__(self, 'label', display_label(self.symbol))
        if self.sector is not None and not str(self.sector).strip():
            object.__setattr__(self, 'sector', None)

    def __repr__(self) -> str:
        return (
            f"Instrument({self.symbol!r}, sector={self.sector!r}, "
            f"observations={len(self.series)})"
        )


def display_label(symbol: str) -> str:
    """Strip exchange suffixes such as ``.NS`` for display."""
    for suffix in SYMBOL_SUFFIXES:
        if symbol.endswith(suffix):
            return symbol[: -len(suffix)]
    return symbol


InstrumentInput = Union[
    Mapping[str, Union[Instrument, pd.Series]],
    Iterable[Instrument],
]


def coerce_instruments(
    instruments: InstrumentInput,
    sectors: Optional[Mapping[str, str]] = None,
) -> List[Instrument]:
    """
    Normalize the accepted input shapes into a list of instruments.

    Args:
        instruments: Mapping symbol -> Instrument or price Series,
            or an iterable of Instrument objects
        sectors: Optional symbol -> sector tags; overrides tags carried
            by the instruments

    Returns:
        Instruments in input order

    Raises:
        GraphConstructionError: If a symbol appears twice
    """
    sectors = sectors or {}
    result: List[Instrument] = []
    seen = set()

    if isinstance(instruments, Mapping):
        items: Iterable[Any] = instruments.items()
    else:
        items = ((inst.symbol, inst) for inst in instruments)

    for symbol, value in items:
        if isinstance(value, Instrument):
            inst = value
            if inst.symbol != symbol:
                inst = Instrument(symbol, inst.series, inst.label, inst.sector, inst.version)
        else:
            inst = Instrument(symbol=str(symbol), series=value)

        if inst.symbol in sectors:
            inst = Instrument(
                inst.symbol, inst.series, inst.label, sectors[inst.symbol], inst.version
            )
        if inst.symbol in seen:
            raise GraphConstructionError(f"duplicate instrument id {inst.symbol!r}")
        seen.add(inst.symbol)
        result.append(inst)

    return result
