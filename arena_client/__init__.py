"""Thin client for the card arena battle server."""
