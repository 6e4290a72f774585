"""ctxgraph - context engine for retrieval-augmented generation.

Chunks free-form content at semantic boundaries, links the resulting
context nodes into a similarity graph, and answers "what is relevant to
this query within this token budget".
"""

__version__ = "0.1.0"
