"""Optimal ingredient mixing routes over the space of product effect sets."""

__version__ = "0.1.0"