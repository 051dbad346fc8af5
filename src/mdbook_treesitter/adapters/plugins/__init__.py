"""Host plugins built on top of the document rewriter."""
