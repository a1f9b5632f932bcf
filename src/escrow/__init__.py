"""Escrow-backed order lifecycle engine for a two-sided marketplace."""
