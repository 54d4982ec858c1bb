#!/usr/bin/env python3
"""
RAG Navigator CLI

Usage:
    rag-navigator knowledge-base-search "What are the risk factors?"
    rag-navigator knowledge-base-search "Risk factors" --similarity-threshold 0.8

Exit codes:
    0    answer printed (including "no knowledge found")
    2    invalid input
    3    embedding/completion provider error
    4    vector store error
    130  cancelled (SIGINT)
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .common.config import NavigatorConfig, load_config
from .common.embedding_service import EmbeddingService
from .common.envector_client import EnVectorClient
from .common.errors import NavigatorError
from .common.llm_client import LLMClient
from .common.schemas import Query
from .retriever.chat_service import KnowledgeBaseChatService
from .retriever.searcher import Searcher
from .retriever.synthesizer import Synthesizer, format_answer_for_display

logger = logging.getLogger("rag_navigator.cli")


def build_parser(config: NavigatorConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-navigator",
        description="Answer questions against an indexed SEC filing.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser(
        "knowledge-base-search",
        help="Answer a question from the knowledge base.",
    )
    search.add_argument("prompt_text", help="Question to answer.")
    search.add_argument("--tenant-id", default=config.scope.tenant_id, help="Tenant scope.")
    search.add_argument("--user-id", default=config.scope.user_id, help="User scope.")
    search.add_argument(
        "--category-id",
        default=config.scope.category_id,
        help="Category scope (empty string searches all categories).",
    )
    search.add_argument(
        "--similarity-threshold",
        type=float,
        default=config.retriever.default_similarity_threshold,
        help="Minimum cosine similarity of retrieved items.",
    )
    return parser


def build_service(config: NavigatorConfig) -> KnowledgeBaseChatService:
    """Wire the pipeline from configuration."""
    pipeline = config.retriever
    embedding_service = EmbeddingService.from_config(config.embedding, pipeline.embedding_dimensions)
    searcher = Searcher(
        EnVectorClient.from_config(config.store),
        index_name=config.store.index_name,
        max_results=pipeline.max_results,
        oversample=pipeline.oversample,
    )
    synthesizer = Synthesizer(
        LLMClient.from_config(config.llm),
        max_workers=pipeline.max_workers,
        max_tokens=config.llm.max_tokens,
    )
    return KnowledgeBaseChatService.from_components(embedding_service, searcher, synthesizer, pipeline)


async def _knowledge_base_search(service: KnowledgeBaseChatService, query: Query) -> int:
    """
    Run one query and print the answer.

    SIGINT sets the pipeline's cancel event. Where the loop cannot install
    signal handlers, Ctrl-C surfaces as KeyboardInterrupt in main().
    """
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass

    print("Searching knowledge base...")
    outcome = await service.run(query, cancel_event)

    if not outcome.ok:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return outcome.error.exit_code

    print(format_answer_for_display(outcome.answer))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    config = load_config()
    args = build_parser(config).parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "knowledge-base-search":
        query = Query(
            tenant_id=args.tenant_id,
            user_id=args.user_id,
            category_id=args.category_id or None,
            prompt_text=args.prompt_text,
            similarity_threshold=args.similarity_threshold,
        )
        try:
            service = build_service(config)
            return asyncio.run(_knowledge_base_search(service, query))
        except KeyboardInterrupt:
            print("Cancelled.", file=sys.stderr)
            return 130
        except NavigatorError as e:
            logger.error("Error occurred while executing knowledge-base-search: %s", e)
            print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

    return 1


if __name__ == "__main__":
    sys.exit(main())
