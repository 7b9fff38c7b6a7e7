"""
Command-line interface for the proposal cache.

Reads print JSON to stdout; logs and errors go to stderr.

Usage:
    proposal-cache sync --full
    proposal-cache index
    proposal-cache search "skate park funding" --limit 3
    proposal-cache proposal 42 --pretty
    python -m proposal_cache.cli.main --help
"""

import asyncio
import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from ..adapters.subgraph_client import SubgraphClient
from ..config import Settings, settings as default_settings
from ..db.store import LocalCacheStore
from ..errors import ProposalCacheError
from ..models.proposal import ProposalStatus
from ..services.embedding_service import build_embedding_provider
from ..services.indexing_service import EmbeddingIndexer
from ..services.proposal_service import ProposalService
from ..services.search_service import SemanticSearchEngine
from ..services.sync_service import SyncEngine

logger = logging.getLogger(__name__)

# Progress output must not mix with JSON on stdout
console = Console(stderr=True)

STATUS_CHOICES = [status.value for status in ProposalStatus]


class CommandError(Exception):
    """A command could not produce a result (e.g. proposal not found)"""


def emit(payload: Any, pretty: bool = False) -> None:
    """Print a pydantic model, list of models or plain data as JSON."""
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        payload = [
            item.model_dump(mode="json") if hasattr(item, "model_dump") else item
            for item in payload
        ]
    print(json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False))


async def cmd_proposals(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    page = await ProposalService(store).list_proposals(
        status=args.status, limit=args.limit, offset=args.offset, order=args.order
    )
    emit(page, args.pretty)


async def cmd_proposal(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    service = ProposalService(store)
    if args.refresh:
        cached = await service.resolve(args.ref)
        number = cached.proposal_number if cached else None
        if number is None and str(args.ref).strip().isdigit():
            number = int(args.ref)
        if number is not None:
            async with SubgraphClient(config.subgraph) as client:
                await SyncEngine(store, client, config.subgraph).sync_proposal(number)

    detail = await service.get_proposal(args.ref)
    if detail is None:
        raise CommandError(f"Proposal {args.ref} not found")
    emit(detail, args.pretty)


async def cmd_votes(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    votes = await ProposalService(store).get_votes(
        args.ref, support=args.support, limit=args.limit, offset=args.offset
    )
    if votes is None:
        raise CommandError(f"Proposal {args.ref} not found")
    emit(votes, args.pretty)


async def cmd_search(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    query = " ".join(args.query)
    provider = build_embedding_provider(config)
    try:
        hits = await SemanticSearchEngine(store, provider).search(
            query, status=args.status, limit=args.limit, threshold=args.threshold
        )
    finally:
        await provider.close()

    results = []
    for hit in hits:
        results.append({
            "proposal_number": hit.proposal.proposal_number,
            "title": hit.proposal.title,
            "status": hit.proposal.status.value,
            "score": round(hit.score, 3),
            "chunk_index": hit.chunk_index,
            "excerpt": hit.excerpt,
        })
    emit({"query": query, "results": results}, args.pretty)


async def cmd_sync(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    async with SubgraphClient(config.subgraph) as client:
        result = await SyncEngine(store, client, config.subgraph).sync(full=args.full)
    emit(result, args.pretty)


async def cmd_index(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    provider = build_embedding_provider(config)
    indexer = EmbeddingIndexer(store, provider, config.embedding)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True
        ) as progress:
            task = progress.add_task("Indexing proposals...", total=None)

            def on_progress(done, total, proposal):
                progress.update(
                    task,
                    total=total,
                    completed=done,
                    description=f"Indexed #{proposal.proposal_number}"
                )

            if args.force:
                result = await indexer.reindex(args.force, on_progress=on_progress)
            elif args.stale:
                result = await indexer.reindex_stale(on_progress=on_progress)
            else:
                result = await indexer.index_missing(on_progress=on_progress)
    finally:
        await provider.close()

    emit(result, args.pretty)


async def cmd_stats(args: argparse.Namespace, store: LocalCacheStore, config: Settings) -> None:
    stats = await store.get_embedding_stats()
    last_sync = await store.get_last_sync_time()
    emit(
        {"embeddings": stats.model_dump(mode="json"), "last_sync_time": last_sync},
        args.pretty
    )


COMMANDS = {
    "proposals": cmd_proposals,
    "proposal": cmd_proposal,
    "votes": cmd_votes,
    "search": cmd_search,
    "sync": cmd_sync,
    "index": cmd_index,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proposal-cache",
        description="Local cache and semantic search for DAO proposals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mirror every proposal and vote, then build the embedding index
  proposal-cache sync --full
  proposal-cache index

  # Active proposals, newest first
  proposal-cache proposals --status ACTIVE --limit 10

  # Semantic search
  proposal-cache search skate park funding --limit 3 --threshold 0.4
        """
    )
    parser.add_argument("--pretty", action="store_true", help="Indent JSON output")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging (DEBUG level)")
    parser.add_argument("--database", type=str, help="Path of the SQLite cache file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    proposals = subparsers.add_parser("proposals", help="List cached proposals")
    proposals.add_argument("--status", type=str.upper, choices=STATUS_CHOICES)
    proposals.add_argument("--limit", type=int, default=20, help="Page size, 1-100 (default: 20)")
    proposals.add_argument("--offset", type=int, default=0)
    proposals.add_argument("--order", choices=["asc", "desc"], default="desc")

    proposal = subparsers.add_parser("proposal", help="Show one proposal")
    proposal.add_argument("ref", help="Proposal number or 0x id")
    proposal.add_argument("--refresh", action="store_true", help="Re-fetch it from the subgraph first")

    votes = subparsers.add_parser("votes", help="List votes of a proposal")
    votes.add_argument("ref", help="Proposal number or 0x id")
    votes.add_argument("--support", type=str.upper, choices=["FOR", "AGAINST", "ABSTAIN"])
    votes.add_argument("--limit", type=int, default=50, help="Page size, 1-200 (default: 50)")
    votes.add_argument("--offset", type=int, default=0)

    search = subparsers.add_parser("search", help="Semantic search over proposals")
    search.add_argument("query", nargs="+", help="Natural language query")
    search.add_argument("--status", type=str.upper, choices=STATUS_CHOICES)
    search.add_argument("--limit", type=int, default=5, help="Maximum hits, 1-20 (default: 5)")
    search.add_argument("--threshold", type=float, default=0.3, help="Minimum similarity (default: 0.3)")

    sync = subparsers.add_parser("sync", help="Sync proposals and votes from the subgraph")
    sync.add_argument("--full", action="store_true", help="Page through every proposal")

    index = subparsers.add_parser("index", help="Build embeddings for proposals")
    mode = index.add_mutually_exclusive_group()
    mode.add_argument("--force", type=int, nargs="+", metavar="N", help="Rebuild these proposal numbers")
    mode.add_argument("--stale", action="store_true", help="Rebuild proposals whose text changed")

    subparsers.add_parser("stats", help="Show index statistics")

    return parser


def configure_logging(config: Settings, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.app.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.app.log_format, stream=sys.stderr)
    if not verbose:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


async def run(args: argparse.Namespace, config: Settings) -> int:
    """Run one command against the cache; returns the exit code."""
    store = LocalCacheStore(config.db)
    try:
        await store.initialize()
        await COMMANDS[args.command](args, store, config)
        return 0
    except (CommandError, ProposalCacheError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug("Command failed", exc_info=True)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.error("Command failed", exc_info=True)
        return 1
    finally:
        await store.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = default_settings
    if args.database:
        config = config.model_copy(update={
            "db": config.db.model_copy(update={"path": args.database, "database_url": None})
        })

    configure_logging(config, args.verbose)
    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
