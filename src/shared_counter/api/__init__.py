"""HTTP interface for the counter service."""

from shared_counter.api.server import CounterServer, MalformedRequestError, ensure_empty_payload

__all__ = [
    "CounterServer",
    "MalformedRequestError",
    "ensure_empty_payload",
]
