"""Tool boundary: search operations rendered as markdown.

Every tool returns text and never raises; fatal errors come back as a
readable "Error: ..." string.
"""
import logging
from typing import Optional

from embedocs.core.models.search import DocumentContext, IndexStats, SearchResponse
from embedocs.core.services.search_service import SearchService

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 500


def format_response(response: SearchResponse, heading: str) -> str:
    """Render a search response as markdown."""
    if response.is_empty:
        lines = [f"No results found for '{response.query}'."]
        if response.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"- {s}" for s in response.suggestions)
        return "\n".join(lines)

    lines = [f"## {heading}: {response.query}", ""]
    for i, result in enumerate(response.results, 1):
        meta = result.metadata
        lines.append(f"### {i}. {result.title}")
        details = [f"score {result.max_score:.4f}", f"match: {result.provenance.value}"]
        if meta and meta.product:
            details.insert(0, f"product: {meta.product}")
        lines.append(" | ".join(details))
        if meta and meta.url:
            lines.append(f"URL: {meta.url}")
        elif meta and meta.path:
            lines.append(f"Path: {meta.path}")
        for chunk in result.chunks:
            excerpt = chunk.content.strip()
            if len(excerpt) > EXCERPT_CHARS:
                excerpt = excerpt[:EXCERPT_CHARS].rstrip() + "..."
            section = f" ({chunk.section_title})" if chunk.section_title else ""
            lines.append("")
            lines.append(f"> Excerpt{section}:")
            lines.extend(f"> {line}" for line in excerpt.splitlines())
        lines.append("")

    return "\n".join(lines).rstrip()


def format_stats(stats: IndexStats) -> str:
    lines = [
        "## Index status",
        f"- Documents: {stats.document_count}",
        f"- Chunks: {stats.record_count}",
        f"- Configured model: {stats.configured_model or 'unknown'}",
    ]
    if stats.embedding_models:
        lines.append(f"- Models in index: {', '.join(stats.embedding_models)}")
        stale = [m for m in stats.embedding_models if m != stats.configured_model]
        if stale and stats.configured_model:
            lines.append(f"- Warning: index contains vectors from {', '.join(stale)}; run a full refresh")
    if stats.product_breakdown:
        lines.append("")
        lines.append("| Product | Documents |")
        lines.append("|---|---|")
        for product, count in sorted(stats.product_breakdown.items()):
            lines.append(f"| {product} | {count} |")
    return "\n".join(lines)


def format_context(context: DocumentContext) -> str:
    lines = [f"## Full content: {context.title}"]
    if context.metadata and context.metadata.product:
        lines.append(f"- Product: {context.metadata.product}")
    if context.metadata and context.metadata.url:
        lines.append(f"- URL: {context.metadata.url}")
    lines.append(f"- Chunks merged: {context.chunk_count}")
    lines.append(f"- Length: {len(context.content)} characters")
    lines.extend(["", "---", "", context.content])
    return "\n".join(lines)


async def search_docs(
    service: SearchService, query: str, limit: Optional[int] = None
) -> str:
    """Hybrid search tool."""
    try:
        response = await service.hybrid_search(query, limit=limit)
    except Exception as e:
        logger.exception(f"search_docs failed for '{query[:50]}'")
        return f"Error: search failed: {e}"
    return format_response(response, "Search results")


async def mmr_search_docs(
    service: SearchService,
    query: str,
    limit: Optional[int] = None,
    fetch_k: Optional[int] = None,
    lambda_mult: Optional[float] = None,
) -> str:
    """Diverse search tool."""
    try:
        response = await service.mmr_search(
            query, limit=limit, fetch_k=fetch_k, lambda_mult=lambda_mult
        )
    except Exception as e:
        logger.exception(f"mmr_search_docs failed for '{query[:50]}'")
        return f"Error: MMR search failed: {e}"
    return format_response(response, "Diverse results")


async def find_similar_docs(
    service: SearchService, content: str, limit: Optional[int] = None
) -> str:
    """Similar-content tool."""
    try:
        response = await service.find_similar(content, limit=limit)
    except Exception as e:
        logger.exception("find_similar_docs failed")
        return f"Error: similarity search failed: {e}"
    return format_response(response, "Similar documents")


async def fetch_full_context_docs(
    service: SearchService, document_id: str, remove_overlap: bool = True
) -> str:
    """Whole-document tool."""
    try:
        context = await service.fetch_full_context(
            document_id, remove_overlap=remove_overlap
        )
    except Exception as e:
        logger.exception(f"fetch_full_context_docs failed for '{document_id}'")
        return f"Error: cannot fetch document: {e}"
    if context is None:
        return f"No indexed content found for '{document_id}'."
    return format_context(context)


async def index_status(service: SearchService) -> str:
    """Index statistics tool."""
    try:
        stats = await service.get_stats()
    except Exception as e:
        logger.exception("index_status failed")
        return f"Error: cannot read index status: {e}"
    return format_stats(stats)
