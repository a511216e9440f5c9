"""Chat with PDF documents through token chunking, vector search and an LLM."""

__version__ = "0.1.0"
