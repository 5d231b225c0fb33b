"""LLM integration layer.

This package is intentionally small:
- No prompt/output logging in this package; callers decide what reaches the logs.
- Configurable via environment variables.
- Treated as a stateless function by callers; history is always resent.
"""
