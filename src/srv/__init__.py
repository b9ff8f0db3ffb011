"""srv - a small HTTP file server that can browse inside zip archives."""

__version__ = "0.1.0"
