"""gRPC transport layer.

- Server bootstrap and interceptors (request id, logging, exception mapping, publish policy).
- JSON-over-gRPC adapter for the generation use cases.
"""
