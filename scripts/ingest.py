#!/usr/bin/env python
"""Ingest documents into the knowledge graph.

Usage:
    python scripts/ingest.py                     # Ingest every document in DOCUMENTS_DIR
    python scripts/ingest.py notes.md report.pdf # Ingest specific files
    python scripts/ingest.py --rebuild           # Clear the graph first
    python scripts/ingest.py --no-graph          # Skip entity extraction
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatrag import config
from chatrag.errors import ChatRAGError
from chatrag.logging_config import configure_logging
from chatrag.rag.text_extractor import EXTENSION_TYPES
from chatrag.services import build_services
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete!")
        print(f"{'=' * 60}\n")
        print(f"  📁 Documents processed:  {stats['documents_processed']}")
        print(f"  ❌ Documents failed:     {stats['documents_failed']}")
        print(f"  📝 Chunks created:       {stats['chunks_created']}")
        print(f"  🧮 Embeddings generated: {stats['embeddings_generated']}")
        print(f"  🔵 Nodes stored:         {stats['nodes_stored']}")
        print(f"  🔗 Relationships stored: {stats['relationships_stored']}")
        print(f"  ⏱️  Time elapsed:         {elapsed_seconds:.1f}s")

        if stats["chunks_created"] > 0 and elapsed_seconds > 0:
            rate = stats["chunks_created"] / elapsed_seconds
            print(f"  ⚡ Ingestion rate:       {rate:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if stats["documents_failed"] > 0:
            print(f"⚠️  Warning: {stats['documents_failed']} document(s) failed to ingest.")
            print("   Check logs for details.\n")

        if stats["documents_processed"] > 0:
            print(f"✅ Graph database at: {config.GRAPH_DB_PATH}\n")


def find_documents(documents_dir: Path) -> list:
    """List supported documents under a directory, sorted by path."""
    return sorted(
        p for p in documents_dir.rglob("*")
        if p.is_file() and p.suffix.lower() in EXTENSION_TYPES
    )


async def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Ingest documents into the knowledge graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest.py                  # Ingest the documents directory
  python scripts/ingest.py --rebuild        # Clear the graph and ingest again
  python scripts/ingest.py guide.md -v      # Ingest one file with verbose output
        """,
    )

    parser.add_argument(
        "files",
        nargs="*",
        type=Path,
        help="Documents to ingest (default: every supported file in the documents directory)",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Clear the graph before ingesting",
    )
    parser.add_argument(
        "--no-graph",
        action="store_true",
        help="Skip entity and relationship extraction",
    )
    parser.add_argument(
        "--strategy",
        choices=["window", "recursive"],
        default=None,
        help=f"Chunking strategy (default: {config.CHUNK_STRATEGY})",
    )
    parser.add_argument(
        "--documents-dir",
        type=Path,
        default=None,
        help=f"Documents directory (default: {config.DOCUMENTS_DIR})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else "WARNING")

    documents_dir = (args.documents_dir or config.DOCUMENTS_DIR).resolve()
    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\n📋 Configuration:")
        print(f"   Documents directory: {documents_dir}")
        print(f"   Chat model:          {config.CHAT_MODEL}")
        print(f"   Embedding model:     {config.EMBEDDING_MODEL}")
        print(f"   Chunk strategy:      {args.strategy or config.CHUNK_STRATEGY}")
        print(f"   Chunk size:          {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:       {config.CHUNK_OVERLAP} chars")

        if not documents_dir.is_dir():
            raise FileNotFoundError(f"Documents directory not found: {documents_dir}")

        files = [p.resolve() for p in args.files] if args.files else find_documents(documents_dir)
        if not files:
            print("\nNo documents to ingest.\n")
            return

        services = build_services(documents_dir=documents_dir, chunk_strategy=args.strategy)
        await services.initialize()

        try:
            if args.rebuild:
                print("\n⚠️  Rebuild mode: Will clear the existing graph!")
                print("   Press Ctrl+C within 3 seconds to cancel...")
                await asyncio.sleep(3)
                await services.store.clear()

            action = "Rebuilding" if args.rebuild else "Ingesting"
            progress.start(f"{action} {len(files)} Document(s)")

            for i, path in enumerate(files, 1):
                try:
                    await services.ingest.process_document(
                        str(path), extract_graph=not args.no_graph
                    )
                except ChatRAGError as e:
                    # Already counted and logged by the pipeline; keep going
                    if args.verbose:
                        print(f"\n  ❌ {path.name}: {e}")
                progress.update(i, len(files), path)

            stats = services.ingest.stats
            progress.finish(stats)
        finally:
            await services.close()

        if stats["documents_failed"] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\n⚠️  Ingestion cancelled by user.\n")
        sys.exit(1)

    except FileNotFoundError as e:
        print(f"\n❌ Error: {e}\n")
        sys.exit(1)

    except ChatRAGError as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ingest_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
