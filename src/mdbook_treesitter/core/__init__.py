"""Grammar loading, query composition, highlighting and document rewriting."""
