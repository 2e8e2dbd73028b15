"""
Shared utilities: configuration, logging, retry/backoff, LLM access and caching.
"""
