"""Clients for external flight data sources."""

from .infinite_flight import FlightDataError, InfiniteFlightGateway

__all__ = ["FlightDataError", "InfiniteFlightGateway"]
