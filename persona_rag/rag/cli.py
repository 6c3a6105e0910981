#!/usr/bin/env python3
"""
Knowledge Base CLI

Command-line tool for checking the assistant against the knowledge base.

Usage:
    python -m persona_rag.rag.cli query "What projects are on the site?"
    python -m persona_rag.rag.cli query --provider gemini "Where did the owner study?"
    python -m persona_rag.rag.cli tables
    python -m persona_rag.rag.cli stats
"""

import argparse
import asyncio
import logging
import sys

from persona_rag.config import settings
from persona_rag.exceptions import RAGError
from persona_rag.rag.generation import ChatTurn
from persona_rag.rag.orchestrator import MATCH_COUNT, SIMILARITY_THRESHOLD, RAGQueryOrchestrator
from persona_rag.rag.providers import EmbeddingProvider, get_embedding_model_name
from persona_rag.rag.tables import PROVIDER_BINDINGS
from persona_rag.rag.vector_store import ChromaVectorStore, close_vector_store

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def cmd_query(args: argparse.Namespace) -> int:
    """Ask a question and stream the answer to stdout."""
    query = " ".join(args.query)

    if not query.strip():
        print("Error: Please provide a query")
        return 1

    print(f"Query: {query}")
    print(f"Retrieval: threshold={SIMILARITY_THRESHOLD}, count={MATCH_COUNT}")
    print("-" * 50)

    try:
        orchestrator = RAGQueryOrchestrator()
        fragments = await orchestrator.answer_query(
            [ChatTurn(role="user", content=query)],
            provider=args.provider,
        )

        async for fragment in fragments:
            print(fragment, end="", flush=True)
        print()

        return 0

    except RAGError as e:
        logger.error(f"Query failed: {e}")
        return 1

    finally:
        await close_vector_store()


async def cmd_tables(args: argparse.Namespace) -> int:
    """Print the storage objects used by each embedding provider."""
    print("Provider Storage Bindings")
    print("-" * 50)

    for provider in EmbeddingProvider:
        binding = PROVIDER_BINDINGS[provider]
        print(f"\n{provider.value} ({get_embedding_model_name(provider)})")
        print(f"  Chunk table:           {binding.chunk_table}")
        print(f"  Match function:        {binding.match_function}")
        print(f"  LangChain view:        {binding.legacy_chunk_view}")
        print(f"  LangChain match:       {binding.legacy_match_function}")

    return 0


async def cmd_stats(args: argparse.Namespace) -> int:
    """Show local ChromaDB collection statistics."""
    try:
        store = ChromaVectorStore(persist_directory=args.persist_dir)
        stats = store.get_collection_stats()

        print("Knowledge Base Statistics")
        print("-" * 50)
        print(f"Persist directory: {stats['persist_directory']}")

        if not stats["collections"]:
            print("No collections found")
        for name, count in sorted(stats["collections"].items()):
            print(f"  {name}: {count} chunks")

        return 0

    except Exception as e:
        logger.error(f"Failed to get stats: {e}")
        return 1


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Knowledge Base CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Ask a question:
    python -m persona_rag.rag.cli query "What projects are on the site?"

  Show provider tables:
    python -m persona_rag.rag.cli tables

  Show local statistics:
    python -m persona_rag.rag.cli stats --persist-dir ./data/chroma
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Query command
    query_parser = subparsers.add_parser("query", help="Ask the assistant a question")
    query_parser.add_argument("query", nargs="+", help="Question text")
    query_parser.add_argument(
        "--provider", "-p", type=str, default=None,
        help="Embedding provider (openai, gemini, huggingface)"
    )

    # Tables command
    subparsers.add_parser("tables", help="Show per-provider storage objects")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show local ChromaDB statistics")
    stats_parser.add_argument(
        "--persist-dir", type=str, default=settings.chroma_persist_directory,
        help=f"ChromaDB directory (default: {settings.chroma_persist_directory})"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "query": cmd_query,
        "tables": cmd_tables,
        "stats": cmd_stats,
    }

    return asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
