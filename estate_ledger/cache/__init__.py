"""In-memory entity set with debounced persistence."""

from estate_ledger.cache.write_through import WriteThroughCache

__all__ = ["WriteThroughCache"]
