"""deepdocs retrieval — semantic search and grounded answers."""

from deepdocs.rag.answer import Answer, answer
from deepdocs.rag.retriever import make_snippet, search, search_in_collection

__all__ = ["Answer", "answer", "make_snippet", "search", "search_in_collection"]
