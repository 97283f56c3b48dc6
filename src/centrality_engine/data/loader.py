"""
Data loading module.

Handles loading price panels (wide CSV: one date column, one column per
symbol) and sector maps (YAML: symbol -> sector code).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from pathlib import Path
import logging

import pandas as pd
import yaml

from ..core.config import EngineConfig
from ..core.exceptions import DataLoadError, InvalidFormatError
from .instrument import Instrument

logger = logging.getLogger(__name__)


@dataclass
class LoadedData:
    """Container for loaded market data."""
    prices: pd.DataFrame
    instruments: List[Instrument]
    period: Tuple[pd.Timestamp, pd.Timestamp]

    @property
    def symbols(self) -> List[str]:
        return [inst.symbol for inst in self.instruments]

    def __repr__(self) -> str:
        return (
            f"LoadedData(instruments={len(self.instruments)}, "
            f"period={self.period[0].date()} ~ {self.period[1].date()}, "
            f"rows={len(self.prices)})"
        )


def load_sector_map(path: Path) -> Dict[str, str]:
    """
    Load a symbol -> sector mapping from YAML.

    Accepts either a flat mapping or one nested under a ``sectors`` key.

    Raises:
        DataLoadError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise DataLoadError(f"Sector map not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidFormatError(str(path), "YAML mapping symbol -> sector", str(e)) from e

    if isinstance(raw, dict) and isinstance(raw.get('sectors'), dict):
        raw = raw['sectors']
    if not isinstance(raw, dict):
        raise InvalidFormatError(str(path), "YAML mapping symbol -> sector", type(raw).__name__)

    mapping = {str(k): str(v) for k, v in raw.items() if v is not None}
    logger.info(f"Loaded {len(mapping)} sector tags from {path}")
    return mapping


class PriceLoader:
    """
    Loader for wide price CSV files.

    Format:
        - first column: dates (any pandas-parseable format)
        - remaining columns: one price series per symbol
    """

    def __init__(
        self,
        filepath: Path,
        config: Optional[EngineConfig] = None,
        sectors: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize data loader.

        Args:
            filepath: Path to the price CSV
            config: Configuration (sector tags come from config.sectors)
            sectors: Extra sector tags, overriding the config
        """
        self.filepath = Path(filepath)
        self.config = config or EngineConfig()
        self.sectors = dict(self.config.sectors)
        self.sectors.update(sectors or {})

    def load(self) -> LoadedData:
        """
        Load prices and build instruments.

        Returns:
            LoadedData with one Instrument per column

        Raises:
            DataLoadError: If the file cannot be read or holds no data
            InvalidFormatError: If the dates cannot be parsed
        """
        prices = self._read_csv()

        instruments = []
        for symbol in prices.columns:
            series = prices[symbol]
            if series.notna().sum() == 0:
                logger.warning(f"Column {symbol} has no numeric data, skipping")
                continue
            instruments.append(Instrument(
                symbol=symbol,
                series=series,
                sector=self.sectors.get(symbol),
            ))

        if not instruments:
            raise DataLoadError(f"No price columns found in {self.filepath}")

        untagged = [i.symbol for i in instruments if i.sector is None]
        if untagged:
            logger.debug(f"{len(untagged)} instruments without sector tag: {', '.join(untagged[:8])}")

        period = (prices.index[0], prices.index[-1])
        logger.info(
            f"Loaded {len(instruments)} instruments: "
            f"{period[0].date()} ~ {period[1].date()} ({len(prices)} rows)"
        )
        return LoadedData(prices=prices, instruments=instruments, period=period)

    def _read_csv(self) -> pd.DataFrame:
        logger.info(f"Loading prices from {self.filepath}")

        if not self.filepath.exists():
            raise DataLoadError(
                f"Data file not found: {self.filepath}",
                "Please provide a valid path to a price CSV"
            )

        try:
            df = pd.read_csv(self.filepath)
        except PermissionError as e:
            raise DataLoadError(
                f"Cannot read file: {self.filepath}",
                "File may be open in another application"
            ) from e
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise DataLoadError(f"Failed to read CSV file: {e}") from e

        if df.shape[1] < 2:
            raise InvalidFormatError(
                str(self.filepath),
                "a date column followed by one column per symbol",
                f"found {df.shape[1]} column(s)"
            )

        date_col = df.columns[0]
        try:
            df[date_col] = pd.to_datetime(df[date_col])
        except (ValueError, TypeError) as e:
            raise InvalidFormatError(
                str(self.filepath),
                "First column should be parseable as datetime",
                f"Failed to parse dates: {e}"
            ) from e

        df = df.set_index(date_col).sort_index()
        df.index.name = 'Date'
        prices = df.apply(pd.to_numeric, errors='coerce')
        logger.debug(f"Parsed {len(prices)} rows, {len(prices.columns)} columns")
        return prices
