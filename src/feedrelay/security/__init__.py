"""
Request admission checks applied before a payload is parsed.

- **signature_verifier.py**: HMAC-SHA256 verification of the raw webhook body.
- **rate_limiter.py**: Fixed-window per-origin request counter.
"""
