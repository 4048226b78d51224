"""Context expansion around matched chunks."""

from grounded_search.retrieval.context.expander import ContextExpander, estimate_tokens

__all__ = ["ContextExpander", "estimate_tokens"]
