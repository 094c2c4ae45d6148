"""
Parser tunables loaded from the configuration table.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParserSettings:
    """
    Geometric tolerances and worker sizing for the parser.

    Attributes:
        line_y_tolerance: Max distance between a token's y-center and a line anchor
        header_band_margin: Extension of the outermost column bands
        row_band_epsilon: Slack around each positional row band
        wrap_tolerance: Reach below a row's lowest token for wrapped cell text
        row_edge_extension: Synthetic band height beyond the first and last rows
        proximity_window_words: Words on each side of an identifier searched for a quantity
        max_workers: Page worker threads, 0 meaning one per CPU core
    """
    line_y_tolerance: float = 5.0
    header_band_margin: float = 40.0
    row_band_epsilon: float = 2.0
    wrap_tolerance: float = 14.0
    row_edge_extension: float = 10.0
    proximity_window_words: int = 8
    max_workers: int = 0

    @property
    def worker_count(self) -> int:
        if self.max_workers and self.max_workers > 0:
            return self.max_workers
        return os.cpu_count() or 1


_INTEGER_SETTINGS = ('proximity_window_words', 'max_workers')


def load_parser_settings(db_manager) -> ParserSettings:
    """
    Load parser settings from the database with fallback defaults.

    Missing or unreadable keys keep their default value.

    Args:
        db_manager: Database manager instance

    Returns:
        ParserSettings built from the 'parsing' configuration category
    """
    defaults = ParserSettings()
    values: Dict[str, Any] = {}

    for key in ParserSettings.__dataclass_fields__:
        try:
            value = db_manager.get_config(key).get_typed_value()
        except Exception as e:
            logger.debug(f"Using default for parser setting {key}: {e}")
            continue
        values[key] = int(value) if key in _INTEGER_SETTINGS else float(value)

    settings = ParserSettings(**{**defaults.__dict__, **values})
    logger.debug(f"Parser settings: {settings}")
    return settings
