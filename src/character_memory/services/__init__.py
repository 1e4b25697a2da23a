from .memory_search_service import BackfillReport, MemorySearchService, RebuildReport, importance_label

__all__ = ["BackfillReport", "MemorySearchService", "RebuildReport", "importance_label"]
