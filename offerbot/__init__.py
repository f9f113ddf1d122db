"""Offer assistant: chat dialogue engine that matches buyers and renters to catalog offers."""

__version__ = "0.1.0"
