from .import_orchestrator import ImportOrchestrator, merge_enrichment

__all__ = ["ImportOrchestrator", "merge_enrichment"]
