"""
BNS search CLI.

Usage:
    bns load --corpus data/bns.xlsx
    bns backfill --timeout 60
    bns search "stealing a motorcycle" --json
    bns serve --port 8080
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config.config_loader import SearchConfig
from .core.exceptions import BnsError, EncoderUnavailableError
from .core.logging import configure_logging
from .ingest.corpus_loader import bootstrap_corpus
from .retrieval.service import RetrievalService
from .storage import create_entry_store_from_config
from .vector.encoder import TokenIdEncoder


logger = logging.getLogger(__name__)


def _build_service(config: SearchConfig) -> RetrievalService:
    store = create_entry_store_from_config(config.get_storage_config())
    encoder = TokenIdEncoder.from_config(config.get_encoder_config())
    return RetrievalService(
        store=store,
        encoder=encoder,
        top_k=config.get_search_config().get("top_k", 4),
    )


def cmd_load(args, config: SearchConfig) -> int:
    corpus_path = args.corpus or config.get_corpus_path()
    if not corpus_path:
        print("No corpus path given (use --corpus or set corpus.path)", file=sys.stderr)
        return 2

    store = create_entry_store_from_config(config.get_storage_config())
    try:
        imported = bootstrap_corpus(store, corpus_path)
    finally:
        store.close()

    print(f"Imported {imported} sections")
    return 0


def cmd_backfill(args, config: SearchConfig) -> int:
    service = _build_service(config)
    try:
        timeout = args.timeout
        if timeout is None:
            timeout = config.get_search_config().get("backfill_timeout_seconds")
        report = service.backfill(timeout_seconds=timeout)
    finally:
        service.store.close()

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.success else 1


def cmd_search(args, config: SearchConfig) -> int:
    service = _build_service(config)
    try:
        service.backfill()
        result = service.search(args.query)
    finally:
        service.store.close()

    if args.json:
        print(json.dumps({
            "query": result.query_text,
            "degraded": result.degraded,
            "warnings": result.warnings,
            "results": [entry.to_public_dict() for entry in result.entries],
        }, indent=2))
        return 0

    if not result.entries:
        print("No matching sections")
    for rank, entry in enumerate(result.entries, start=1):
        print(f"{rank}. Section {entry.section_no}: {entry.title}")
        print(f"   Punishment: {entry.punishment}")
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return 0


def cmd_serve(args, config: SearchConfig) -> int:
    import uvicorn
    from .api.app import build_app

    api_config = config.get_api_config()
    uvicorn.run(
        build_app(config),
        host=args.host or api_config.get("host", "0.0.0.0"),
        port=args.port or api_config.get("port", 8080),
        log_config=None,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="BNS section search - find relevant sections for a query",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import the spreadsheet into an empty store
  bns load --corpus "data/BNS 2K24.xlsx"

  # Compute missing embeddings
  bns backfill

  # Query from the command line
  bns search "someone stole my car" --json

  # Run the HTTP API
  bns serve --port 8080
        """,
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to YAML config file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: from config)")
    parser.add_argument("--structured-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    load_parser = subparsers.add_parser("load", help="Import the corpus if the store is empty")
    load_parser.add_argument("--corpus", type=str, default=None, help="Workbook or CSV path")

    backfill_parser = subparsers.add_parser("backfill", help="Encode and persist missing embeddings")
    backfill_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop between entries after this many seconds",
    )

    search_parser = subparsers.add_parser("search", help="Run a query")
    search_parser.add_argument("query", type=str, help="Query text")
    search_parser.add_argument("--json", action="store_true", help="Print JSON output")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = SearchConfig(config_path=args.config)
    except BnsError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging_config = config.get_logging_config()
    configure_logging(
        level=args.log_level or logging_config.get("level", "INFO"),
        structured=args.structured_logs or logging_config.get("structured", False),
    )

    commands = {
        "load": cmd_load,
        "backfill": cmd_backfill,
        "search": cmd_search,
        "serve": cmd_serve,
    }

    try:
        return commands[args.command](args, config)
    except EncoderUnavailableError as e:
        logger.error(f"Encoder unavailable: {e}")
        return 3
    except BnsError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
