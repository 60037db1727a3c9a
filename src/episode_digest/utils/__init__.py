"""Shared utilities: retry, error classification, timeouts, JSON logging."""
