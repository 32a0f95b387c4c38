"""
Shared primitives: time coercion, structured logging and env-driven config.
"""
