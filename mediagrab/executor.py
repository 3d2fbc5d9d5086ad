"""
Sequential strategy execution against the extraction engine.

Strategies are tried one at a time in catalog order; the first success wins.
Each strategy is tried exactly once per call. Attempts never run in parallel:
cheaper strategies come first, so racing them would defeat the cost ordering.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Sequence, Union

import yt_dlp

from .engine import YtDlpEngine
from .errors import AllStrategiesFailed
from .models import RawMediaInfo
from .strategies import Strategy

logger = logging.getLogger(__name__)


@dataclass
class Success:
    info: RawMediaInfo
    strategy: Strategy

    @property
    def strategy_name(self) -> str:
        return self.strategy.name


@dataclass
class Failure:
    strategy: Strategy
    error: str


AttemptResult = Union[Success, Failure]


class StrategyExecutor:
    """Runs strategies against the engine until one returns metadata."""

    def __init__(self, engine: YtDlpEngine):
        self.engine = engine

    async def attempt(self, url: str, strategy: Strategy) -> AttemptResult:
        """Run a single metadata extraction with the strategy's options."""
        opts = strategy.ytdlp_opts()
        loop = asyncio.get_event_loop()
        try:
            info = await loop.run_in_executor(None, partial(self.engine.extract_info, url, opts))
        except yt_dlp.utils.DownloadError as e:
            return Failure(strategy, str(e))
        except Exception as e:
            logger.exception(f"💥 Unexpected error in strategy {strategy.name}")
            return Failure(strategy, f"Unexpected exception in strategy: {e}")

        if not info:
            return Failure(strategy, "yt-dlp returned no info")

        return Success(RawMediaInfo.from_engine(info), strategy)

    async def resolve(self, url: str, strategies: Sequence[Strategy]) -> Success:
        """
        Try strategies in order and return the first success.

        Raises AllStrategiesFailed carrying the last error if none succeed.
        """
        total = len(strategies)
        attempts: List[Dict[str, str]] = []
        last_error = "No strategies available"

        for idx, strategy in enumerate(strategies, 1):
            logger.info(f"🎯 Strategy {idx}/{total}: {strategy.name}")
            result = await self.attempt(url, strategy)

            if isinstance(result, Success):
                logger.info(
                    f"✅ Strategy {idx}/{total} ({strategy.name}) succeeded: "
                    f"{len(result.info.formats)} formats"
                )
                return result

            logger.warning(f"⚠️ Strategy {idx}/{total} ({strategy.name}) failed: {result.error[:120]}")
            attempts.append({"strategy": strategy.name, "error": result.error[:300]})
            last_error = result.error

        logger.error(f"❌ All {total} strategies failed for {url}")
        raise AllStrategiesFailed(last_error, attempts)
