"""CLI entry point for CNPJ discovery."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from cnpj_pull.config import settings
from cnpj_pull.client.batch import BatchLookup, BatchResult, read_identifiers
from cnpj_pull.errors import DiscoveryError
from cnpj_pull.identifiers import clean_cnpj, is_valid_cnpj
from cnpj_pull.models import FilterSet, ResolvedEntity, RunStats
from cnpj_pull.models.database import init_db
from cnpj_pull.api.routes import build_discovery_service, build_resolver

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_discovery(filters: FilterSet, use_mock: bool = False) -> list[ResolvedEntity]:
    """Run a discovery and log progress as it streams."""
    init_db()
    service = build_discovery_service(use_mock)
    matches: list[ResolvedEntity] = []

    async for event in service.stream(filters):
        if event.type == "status":
            logger.info(event.message)
        elif event.type == "search_progress":
            logger.info(
                f"  Search {event.queries_completed}/{event.total_queries}: "
                f"{event.candidates_found} candidates"
            )
        elif event.type == "match":
            matches.append(event.entity)
            logger.info(f"  Match {len(matches)}: {event.entity.display_name} ({event.entity.formatted_cnpj})")
        elif event.type == "progress":
            p = event.progress
            logger.info(f"  Processed {p.processed}/{p.total}, {p.matched} matches")
        elif event.type == "complete":
            print_summary(matches, event.stats)
        elif event.type == "error":
            raise DiscoveryError(event.message)

    return matches


async def run_lookup(identifier: str, use_mock: bool = False) -> ResolvedEntity:
    cnpj = clean_cnpj(identifier)
    if not is_valid_cnpj(cnpj):
        raise DiscoveryError(f"Invalid CNPJ: {identifier}")
    init_db()
    entity = await build_resolver(use_mock).resolve(cnpj)
    if entity is None:
        raise DiscoveryError(f"CNPJ not found: {cnpj}")
    print_entity(entity)
    return entity


async def run_batch(path: Path, use_mock: bool = False) -> BatchResult:
    init_db()
    identifiers = read_identifiers(path)
    logger.info(f"Read {len(identifiers)} valid CNPJs from {path}")
    resolver = build_resolver(use_mock)

    def report(item):
        label = item.entity.display_name if item.entity else item.error
        logger.info(f"  {item.cnpj}: {item.status.value} - {label}")

    result = await BatchLookup(resolver.resolve).run(identifiers, on_item=report)
    print(f"\nAccepted {len(result.accepted)} of {len(result.items)} CNPJs")
    if result.truncated:
        print(f"Only the first {len(result.items)} of {result.total_found} were processed")
    return result


def print_entity(entity: ResolvedEntity):
    print(f"\n{entity.display_name} ({entity.formatted_cnpj})")
    print(f"   Legal name: {entity.legal_name or '-'}")
    print(f"   Status: {entity.status or '-'} | Size: {entity.size_band or '-'}")
    print(f"   Location: {entity.municipality or '-'}/{entity.region or '-'}")
    if entity.primary_activity:
        print(f"   Activity: {entity.primary_activity}")
    if entity.phones or entity.email:
        print(f"   Contact: {', '.join(entity.phones)} {entity.email or ''}".rstrip())
    print(f"   Source: {entity.source}")


def print_summary(matches: list[ResolvedEntity], stats: RunStats):
    """Print a summary of results to console."""
    print("\n" + "=" * 60)
    print("CNPJ DISCOVERY - RESULTS SUMMARY")
    print("=" * 60)

    print(f"\nCandidates found: {stats.candidates_found}")
    print(f"Processed: {stats.processed} ({stats.cache_hits} from cache)")
    print(f"Active matches: {stats.matched}")
    print(f"Inactive: {stats.rejected_inactive}")
    print(f"Out of scope: {stats.rejected_out_of_scope}")
    print(f"Unresolved: {stats.unresolved}")
    print(f"Time: {stats.processing_time_ms / 1000:.1f}s")

    for entity in matches[:10]:
        print_entity(entity)

    print("\n" + "=" * 60)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="CNPJ Pull - Find active Brazilian companies by segment and region"
    )
    parser.add_argument("--mock", action="store_true", help="Use mock search and registry")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Discover companies matching filters")
    discover.add_argument("--segment", "-s", required=True, help="Industry segment, e.g. Restaurantes")
    discover.add_argument("--region", "-r", required=True, help="State code (UF), e.g. SP")
    discover.add_argument("--city", "-c", help="City name")
    discover.add_argument(
        "--size",
        action="append",
        default=[],
        help="Size band (mei, me, epp, medio, grande); repeatable",
    )
    discover.add_argument(
        "--limit", "-l",
        type=int,
        default=settings.default_result_limit,
        help=f"Target number of matches (default: {settings.default_result_limit})",
    )

    lookup = subparsers.add_parser("lookup", help="Look up a single CNPJ")
    lookup.add_argument("cnpj")

    batch = subparsers.add_parser("batch", help="Look up CNPJs from a .csv, .txt or .xlsx file")
    batch.add_argument("file", type=Path)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.command == "discover":
            filters = FilterSet(
                segment=args.segment,
                region=args.region,
                city=args.city,
                size_bands=args.size,
                limit=args.limit,
            )
            asyncio.run(run_discovery(filters, use_mock=args.mock))
        elif args.command == "lookup":
            asyncio.run(run_lookup(args.cnpj, use_mock=args.mock))
        elif args.command == "batch":
            if not args.file.exists():
                logger.error(f"File not found: {args.file}")
                sys.exit(1)
            asyncio.run(run_batch(args.file, use_mock=args.mock))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except (DiscoveryError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
