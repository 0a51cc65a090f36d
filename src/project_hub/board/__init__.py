"""Task board engine for the project hub.

This package holds the task model, fractional column ordering, the
dependency graph, and the file-backed store and engine that tie them
together.
"""
