"""
Core module: settings, storage, retry/error types and the local LLM engine.
"""
