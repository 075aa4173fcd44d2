import argparse
import asyncio
import logging
import sys

from embedocs.config.settings import settings
from embedocs.container import configure_container, container
from embedocs.core.models.ingest import IngestStage, RefreshMode
from embedocs.core.services.ingest_service import IngestService
from embedocs.core.services.search_service import SearchService
from embedocs.presentation import tools

logger = logging.getLogger(__name__)


async def cmd_index(args) -> int:
    """Index command - refresh the index from the docs path."""
    service = container.resolve(IngestService)
    mode = RefreshMode.FULL if args.full else RefreshMode.INCREMENTAL
    result = None

    async for event in service.refresh(mode, allow_zero_vectors=args.allow_zero_vectors):
        if event.stage is IngestStage.SCAN:
            logger.info(f"Scanned {event.total} documents: {event.message}")
        elif event.stage is IngestStage.CHUNK and event.processed % 25 == 0:
            logger.info(f"Chunked {event.processed}/{event.total} documents")
        elif event.stage is IngestStage.EMBED:
            logger.info(f"Indexed {event.processed}/{event.total} chunks")
        elif event.stage is IngestStage.ERROR:
            logger.warning(event.message)
        elif event.stage is IngestStage.DONE:
            result = event.result

    if result is None:
        return 1
    print(
        f"{result.chunks_indexed} chunks indexed: {result.new_documents} new, "
        f"{result.documents_updated} updated, {result.deleted_documents} deleted "
        f"({result.documents_checked} checked, {len(result.errors)} errors)"
    )
    return 1 if result.errors else 0


async def cmd_search(args) -> int:
    service = container.resolve(SearchService)
    output = await tools.search_docs(service, args.query, limit=args.limit)
    print(output)
    return 1 if output.startswith("Error:") else 0


async def cmd_mmr(args) -> int:
    service = container.resolve(SearchService)
    output = await tools.mmr_search_docs(
        service,
        args.query,
        limit=args.limit,
        fetch_k=args.fetch_k,
        lambda_mult=args.lambda_mult,
    )
    print(output)
    return 1 if output.startswith("Error:") else 0


async def cmd_similar(args) -> int:
    service = container.resolve(SearchService)
    output = await tools.find_similar_docs(service, args.text, limit=args.limit)
    print(output)
    return 1 if output.startswith("Error:") else 0


async def cmd_full(args) -> int:
    service = container.resolve(SearchService)
    output = await tools.fetch_full_context_docs(
        service, args.document_id, remove_overlap=not args.keep_overlap
    )
    print(output)
    return 1 if output.startswith("Error:") else 0


async def cmd_status(args) -> int:
    service = container.resolve(SearchService)
    output = await tools.index_status(service)
    print(output)
    return 1 if output.startswith("Error:") else 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="embedocs", description="Hybrid documentation search"
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    pi = sub.add_parser("index", help="Index or refresh documents")
    pi.add_argument("--full", action="store_true", help="Reindex every document")
    pi.add_argument(
        "--allow-zero-vectors",
        action="store_true",
        help="Index zero vectors for batches that fail to embed",
    )
    pi.set_defaults(func=cmd_index)

    ps = sub.add_parser("search", help="Hybrid search")
    ps.add_argument("query", help="Search query")
    ps.add_argument("--limit", type=int, default=None)
    ps.set_defaults(func=cmd_search)

    pm = sub.add_parser("mmr", help="Diverse search with MMR")
    pm.add_argument("query", help="Search query")
    pm.add_argument("--limit", type=int, default=None)
    pm.add_argument("--fetch-k", type=int, default=None)
    pm.add_argument("--lambda", dest="lambda_mult", type=float, default=None)
    pm.set_defaults(func=cmd_mmr)

    pf = sub.add_parser("similar", help="Find documents similar to a text")
    pf.add_argument("text", help="Reference text")
    pf.add_argument("--limit", type=int, default=None)
    pf.set_defaults(func=cmd_similar)

    pc = sub.add_parser("full", help="Print a whole indexed document")
    pc.add_argument("document_id", help="Document id, e.g. crud/insert.md")
    pc.add_argument(
        "--keep-overlap",
        action="store_true",
        help="Keep text repeated between adjacent chunks",
    )
    pc.set_defaults(func=cmd_full)

    pt = sub.add_parser("status", help="Show index statistics")
    pt.set_defaults(func=cmd_status)

    return p


async def _run(args) -> int:
    try:
        return await args.func(args)
    finally:
        await container.aclose()


def main(argv=None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    configure_container(settings)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
