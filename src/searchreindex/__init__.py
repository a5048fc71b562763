"""
SearchReindex - Resumable, checkpointed bulk reindexing for search indexes.

Drives the re-population of search indexes from heterogeneous document
sources in bounded steps that can be suspended and resumed by a job runner.
"""

__version__ = "0.1.0"
__app_name__ = "searchreindex"
