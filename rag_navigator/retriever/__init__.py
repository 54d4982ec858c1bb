"""
Retriever - Knowledge Base Completion

Key Components:
- extract_keywords: Turns the prompt into search terms
- Searcher: Hybrid vector + keyword search with tenant/user/category scope
- Synthesizer: One grounded completion per retrieved item, joined in rank order
- KnowledgeBaseChatService: Runs the pipeline end to end
"""

from .query_processor import extract_keywords
from .searcher import Searcher, SearchResult
from .synthesizer import Synthesizer, SynthesizedAnswer
from .response_cache import ResponseCache
from .chat_service import KnowledgeBaseChatService, CompletionOutcome

__all__ = [
    "extract_keywords",
    "Searcher",
    "SearchResult",
    "Synthesizer",
    "SynthesizedAnswer",
    "ResponseCache",
    "KnowledgeBaseChatService",
    "CompletionOutcome",
]
