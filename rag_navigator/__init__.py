"""
RAG Navigator

Answers natural-language questions against an indexed filing by combining
vector similarity search with keyword ranking, then grounding one LLM
completion on each matched knowledge base item.

Pipeline:
1. Extract search terms from the prompt
2. Embed the prompt
3. Hybrid search (vector + keywords) scoped to tenant/user/category
4. One completion per retrieved item, joined in ranked order

Usage:
    from rag_navigator.common import load_config, EmbeddingService, LLMClient
    from rag_navigator.common.schemas import Query
    from rag_navigator.retriever import KnowledgeBaseChatService
"""

__version__ = "0.1.0"
