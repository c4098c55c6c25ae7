"""DeepSRT Proxy - cached subtitle delivery from an R2 bucket.

This package provides:
- A FastAPI edge proxy serving ``/srt/<key>`` from R2 behind a response cache
- An authenticated cache purge endpoint
- A small CLI for running the proxy and purging entries
"""

__version__ = "0.1.0"
