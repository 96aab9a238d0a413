"""
Value-bet verification runner.

Settles stored predictions against official results and reports
prediction accuracy.

Usage:
    python -m valuebet.main verify    # settle predictions whose match is over
    python -m valuebet.main stats     # accuracy by market and confidence tier

Configuration via .env (nested keys use "__"):
    PREDICTIONS_PATH=predictions.json
    VERIFICATION__RESULT_API_KEY=...
    VERIFICATION__BULK_DELAY_MS=1000
    QUOTA__MAX_CALLS_PER_HOUR=100
"""

import argparse
import asyncio
import signal
import sys
from typing import Awaitable, Callable, Optional

from dotenv import load_dotenv
load_dotenv()

import orjson
import structlog

from config.settings import Settings, get_settings
from valuebet.errors import InvalidTransition
from valuebet.feeds.base import ResultProvider
from valuebet.feeds.results_api import HttpResultProvider, ResultAPIConfig
from valuebet.models.schemas import Prediction
from valuebet.storage import JsonPredictionStore
from valuebet.utils.logging import VerificationLog, setup_logging
from valuebet.utils.tasks import CancellationToken
from valuebet.verification.quota import QuotaConfig, init_rate_limiter
from valuebet.verification.tracker import (
    accuracy_stats,
    apply_outcome,
    predictions_needing_verification,
)
from valuebet.verification.verifier import (
    BulkVerificationReport,
    VerificationConfig,
    VerificationController,
)

logger = structlog.get_logger()


class VerificationRunner:
    """Loads pending predictions, verifies them and persists outcomes."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provider: Optional[ResultProvider] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.settings = settings or get_settings()
        self.logger = logger.bind(component="verification_runner")

        if provider is None and not self.settings.verification.result_api_key:
            raise ValueError("Missing VERIFICATION__RESULT_API_KEY")

        self.provider = provider
        self.sleep = sleep
        self.store = JsonPredictionStore(self.settings.predictions_path)
        self.rate_limiter = init_rate_limiter(QuotaConfig.from_settings(self.settings.quota))
        self.audit = VerificationLog(self.settings.log_dir)
        self.cancel_token = CancellationToken()

    def shutdown(self) -> None:
        self.cancel_token.cancel("Shutdown requested")

    async def run(self, limit: Optional[int] = None) -> BulkVerificationReport:
        try:
            return await self._run(limit)
        finally:
            self.audit.close()

    async def _run(self, limit: Optional[int]) -> BulkVerificationReport:
        due = predictions_needing_verification(
            self.store.list_predictions(),
            min_hours_after_kickoff=self.settings.verification.min_hours_after_kickoff,
        )
        if limit is not None:
            due = due[:limit]

        self.logger.info("Predictions due for verification", count=len(due))
        by_id = {p.prediction_id: p for p in due}

        if self.provider is not None:
            report = await self._verify(self.provider, due)
        else:
            config = ResultAPIConfig.from_settings(self.settings.verification)
            async with HttpResultProvider(config) as provider:
                report = await self._verify(provider, due)

        settled = []
        for outcome in report.outcomes:
            self.audit.log_outcome(outcome)
            if not outcome.success:
                continue
            prediction = by_id[outcome.prediction_id]
            try:
                apply_outcome(prediction, outcome.outcome, outcome.actual_value, outcome.verified_at)
            except InvalidTransition as e:
                self.logger.warning("Outcome not applied", error=e.message)
                continue
            settled.append(prediction)

        if settled:
            self.store.save_many(settled)

        self.logger.info(
            "Verification run finished",
            settled=len(settled),
            quota=self.rate_limiter.quota_status()["daily"],
        )
        return report

    async def _verify(self, provider: ResultProvider, due: list[Prediction]) -> BulkVerificationReport:
        controller = VerificationController(
            provider,
            self.rate_limiter,
            VerificationConfig.from_settings(self.settings.verification),
            sleep=self.sleep,
        )
        return await controller.verify_all(due, self.cancel_token)


def _print_json(data: dict) -> None:
    sys.stdout.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode() + "\n")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(prog="valuebet")
    sub = parser.add_subparsers(dest="command", required=True)
    verify = sub.add_parser("verify", help="Settle predictions whose match is over")
    verify.add_argument("--limit", type=int, default=None)
    sub.add_parser("stats", help="Show prediction accuracy")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    if args.command == "stats":
        store = JsonPredictionStore(settings.predictions_path)
        _print_json(accuracy_stats(store.list_predictions()))
        return 0

    try:
        runner = VerificationRunner(settings)
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1

    def signal_handler(sig, frame):
        print("\nShutdown requested, finishing current item...")
        runner.shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    report = asyncio.run(runner.run(limit=args.limit))
    _print_json(report.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
