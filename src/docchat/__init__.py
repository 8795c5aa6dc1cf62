"""DocChat - structure, reconcile, and retrieve documents for grounded chat.

DocChat turns parsed PDF markdown into a hierarchical section tree, chunks it
for retrieval, corrects LLM-parser hallucinations against a deterministic
layout parse, and reconstructs coherent context blocks at query time.

Main features:
- Section tree with stable header routes
- Section-aware chunking with table provenance and exact token counts
- Layout reconciliation (proximity, edit distance, embedding similarity)
- Token-bounded context reconstruction and prompt assembly
"""

from docchat.config.loader import ConfigLoader
from docchat.lib.errors import ConfigError, DocChatError, ValidationError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigLoader",
    "ConfigError",
    "DocChatError",
    "ValidationError",
]
