"""Residential society portal: membership, maintenance billing and payment settlement."""

__version__ = "0.1.0"
