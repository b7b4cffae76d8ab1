"""
wfe_bootstrap — trust-material assembly and listener lifecycle for an ACME front end.

Reads administrator-supplied PEM chain files, validates them strictly,
combines them into per-issuer default and alternate chains, and serves the
request handler on a plaintext and an optional TLS listener with a bounded,
signal-triggered graceful drain.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
