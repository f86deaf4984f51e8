"""Test suite for the card arena battle service."""
