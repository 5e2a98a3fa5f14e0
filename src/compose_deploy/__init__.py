"""Compose deployment orchestration: deploy, roll back and inspect compose stacks."""

__version__ = "0.1.0"
