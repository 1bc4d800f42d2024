"""
AFD cache package.

Periodically fetches the latest Area Forecast Discussion per NWS office,
caches it in an S3-compatible store (or a local directory in development)
and serves the cached copy without calling upstream again.
"""
