"""Persistence for VALIS landscapes."""

from .manager import DatabaseManager
from .exchange import export_jsonl, import_jsonl

__all__ = ["DatabaseManager", "export_jsonl", "import_jsonl"]
