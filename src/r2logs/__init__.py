"""
r2logs - retrieve Cloudflare Logpush logs from R2.

Resolves a UTC time range to the Logpush objects that cover it, downloads
them concurrently and streams their records in chronological order.
"""

__version__ = "0.1.0"
