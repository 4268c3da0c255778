"""Flightwatch: Infinite Flight pilot tracking backend."""
