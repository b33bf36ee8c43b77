#!/usr/bin/env python
"""Validate setup - check dependencies, configuration, LLM provider and graph store."""
import sys
import asyncio
from pathlib import Path

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("ChatRAG - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 10):
        print_success("Python version >= 3.10")
    else:
        print_error("Python version < 3.10 (required)")
        errors.append("Python version too old")

    in_venv = hasattr(sys, 'base_prefix') and sys.base_prefix != sys.prefix
    if in_venv:
        print_success("Running in virtual environment")
    else:
        print_warning("Not running in virtual environment (recommended)")
        warnings.append("Not in venv")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("quart", "Quart web framework"),
        ("hypercorn", "Hypercorn ASGI server"),
        ("httpx", "HTTP client"),
        ("faiss", "FAISS vector search"),
        ("numpy", "Vector math"),
        ("langchain_text_splitters", "Text splitters"),
        ("pydantic", "Data validation"),
        ("structlog", "Structured logging"),
        ("yaml", "YAML frontmatter"),
        ("pypdf", "PDF extraction"),
        ("dotenv", "Environment files"),
        ("pytest", "Testing framework"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Test configuration
    print_section("3. Configuration")

    try:
        sys.path.insert(0, str(Path(__file__).parent.parent))
        from chatrag import config

        print_success("Config loaded successfully")
        print_info(f"  LLM base URL: {config.LLM_BASE_URL}")
        print_info(f"  Chat model: {config.CHAT_MODEL}")
        print_info(f"  Embedding model: {config.EMBEDDING_MODEL}")
        print_info(f"  Chunk size: {config.CHUNK_SIZE} chars ({config.CHUNK_STRATEGY})")
        print_info(f"  Graph database: {config.GRAPH_DB_PATH}")

        if config.DOCUMENTS_DIR.exists():
            print_success(f"Documents directory exists: {config.DOCUMENTS_DIR}")
        else:
            print_warning(f"Documents directory missing: {config.DOCUMENTS_DIR}")
            warnings.append("Documents directory missing")

    except Exception as e:
        print_error(f"Failed to load config: {e}")
        errors.append("Config loading failed")
        return errors, warnings

    from chatrag.errors import ChatRAGError
    from chatrag.graph.store import GraphStore
    from chatrag.llm_client import LLMClient

    # 4. LLM provider
    print_section("4. LLM Provider")

    llm = LLMClient()
    try:
        models = set(await llm.list_models())
        print_success(f"LLM provider reachable at {config.LLM_BASE_URL}")
        print_info(f"Found {len(models)} models")

        for label, model in (("Chat", config.CHAT_MODEL), ("Embedding", config.EMBEDDING_MODEL)):
            if model in models:
                print_success(f"{label} model available: {model}")
            else:
                print_error(f"{label} model missing: {model}")
                print_info(f"  For Ollama run: ollama pull {model}")
                errors.append(f"Missing {label.lower()} model: {model}")

    except ChatRAGError as e:
        print_error(f"Cannot reach LLM provider: {e.message}")
        print_info("  Make sure the provider is running (e.g. ollama serve)")
        errors.append("LLM provider unreachable")

    # 5. Embedding API test
    print_section("5. Embedding API Test")

    try:
        embedding = await llm.embed("test")
        print_success(f"Embedding API working (dimension: {len(embedding)})")
    except ChatRAGError as e:
        print_error(f"Embedding test failed: {e.message}")
        errors.append(f"Embedding test failed: {e.message}")

    # 6. Graph store
    print_section("6. Graph Store")

    store = GraphStore()
    try:
        await store.initialize()
        stats = store.get_stats()
        print_success(f"Graph store ready: {config.GRAPH_DB_PATH}")
        print_info(
            f"  {stats['documents']} documents, {stats['chunks']} chunks, "
            f"{stats['entities']} entities, {stats['relationships']} relationships"
        )
    except Exception as e:
        print_error(f"Graph store check failed: {e}")
        errors.append(f"Graph store error: {e}")
    finally:
        await store.close()

    # 7. Summary
    print_section("Summary")

    if not errors:
        print_success("All checks passed! ✨")
        print_info("\n  Next step: python scripts/ingest.py, then python scripts/serve.py")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
