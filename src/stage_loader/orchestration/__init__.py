"""Orchestration of staged-file loads."""

from .load_job import LoadRequest, load_staged_files

__all__ = ["LoadRequest", "load_staged_files"]
