from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

from onsite_redemption.config import Config
from onsite_redemption.logging_utils import configure_logging
from onsite_redemption.services.documents import GeneratePlan
from onsite_redemption.station.client import StationApiClient
from onsite_redemption.station.dedup import ScanDeduplicationCache
from onsite_redemption.station.station import OutcomeKind, ScanOutcome, ScanStation, directory_sink


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onsite-station",
        description="Scan registration codes from stdin (one per line) and redeem a resource option.",
    )
    parser.add_argument("--event", required=True, help="Event id")
    parser.add_argument("--type", required=True, dest="resource_type", help="food, kitBag, certificate...")
    parser.add_argument("--option", required=True, help="Resource option id")
    parser.add_argument("--api-url", default=Config.API_URL)
    parser.add_argument("--actor", default=Config.DEFAULT_ACTOR, help="Operator id sent as X-Actor-Id")
    parser.add_argument("--output-dir", default=str(Config.OUTPUT_DIR), help="Where certificates are written")
    parser.add_argument("--no-background", action="store_true", help="Print on pre-printed certificate stock")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL)
    return parser


async def read_line(prompt: str = "") -> Optional[str]:
    if prompt:
        print(prompt, end="", flush=True)
    line = await asyncio.to_thread(sys.stdin.readline)
    return line.rstrip("\n") if line else None


def parse_selection(answer: str, count: int) -> List[int]:
    """``"1,3"`` or ``"all"`` -> zero-based indexes; anything out of range is dropped."""
    answer = (answer or "").strip().lower()
    if answer == "all":
        return list(range(count))
    indexes = []
    for part in answer.replace(" ", ",").split(","):
        if part.isdigit() and 1 <= int(part) <= count:
            indexes.append(int(part) - 1)
    return sorted(set(indexes))


async def prompt_abstracts(plan: GeneratePlan) -> Sequence[str]:
    print("This certificate prints an abstract. Approved abstracts:")
    for number, candidate in enumerate(plan.candidates, start=1):
        print(f"  {number}. {candidate.title} ({candidate.authors or 'no authors listed'})")
    answer = await read_line("Print which (e.g. 1,2 or all)? ")
    return [plan.candidates[index].id for index in parse_selection(answer or "", len(plan.candidates))]


def describe(outcome: ScanOutcome) -> str:
    person = ""
    if outcome.registration:
        person = f" {outcome.registration.get('firstName', '')} {outcome.registration.get('lastName', '')}".rstrip()
    line = f"[{outcome.kind.value}] {outcome.code}{person}: {outcome.message}"
    if outcome.statistics:
        stats = outcome.statistics
        line += f" (total {stats['count']}, today {stats['today']}, unique {stats['uniqueAttendees']})"
    for document in outcome.documents:
        line += f"\n  certificate: {document.location or document.filename}"
    for failure in outcome.failed_documents:
        line += f"\n  certificate failed: {failure.error.message}"
    if outcome.certificate_error:
        line += f"\n  certificate not issued: {outcome.certificate_error.message}"
    return line


async def run(args: argparse.Namespace) -> int:
    async with StationApiClient(base_url=args.api_url, actor_id=args.actor) as client:
        station = ScanStation(
            client,
            args.event,
            args.resource_type,
            args.option,
            cache=ScanDeduplicationCache(Config.DEDUP_TTL_SECONDS, Config.DEDUP_MAX_ENTRIES),
            abstract_selector=prompt_abstracts,
            document_sink=directory_sink(args.output_dir),
            with_background=not args.no_background,
        )
        while True:
            code = await read_line()
            if code is None:
                break
            if not code.strip():
                continue
            outcome = await station.submit(code)
            print(describe(outcome))
            if outcome.kind is OutcomeKind.DUPLICATE:
                answer = await read_line("Already redeemed. Reprint? [y/N] ")
                if (answer or "").strip().lower() in {"y", "yes"}:
                    outcome = await station.confirm_reprint()
                else:
                    outcome = station.cancel_reprint()
                print(describe(outcome))
            if station.failed_generations:
                answer = await read_line("Retry failed certificates? [y/N] ")
                if (answer or "").strip().lower() in {"y", "yes"}:
                    print(describe(await station.retry_generation()))
                else:
                    station.discard_failed_generations()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
