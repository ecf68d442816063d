"""Background replay of deferred requests."""
