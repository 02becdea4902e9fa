"""Contractor compliance and payment core for the Nexus talent marketplace."""

__version__ = "0.1.0"
