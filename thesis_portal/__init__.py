"""Thesis portal: supervision, registration and phased thesis submission."""

__version__ = "1.0.0"
