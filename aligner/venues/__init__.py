"""Venue session implementations.

- paper: in-memory simulated venue (default)
- bitfinex: live Bitfinex spot wallet via REST
"""

from .bitfinex import BitfinexVenueSession
from .paper import PaperOrder, PaperVenueSession

__all__ = [
    "BitfinexVenueSession",
    "PaperOrder",
    "PaperVenueSession",
]
