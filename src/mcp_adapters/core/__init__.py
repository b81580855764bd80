"""Shared building blocks: error hierarchy, logging, secret redaction."""
