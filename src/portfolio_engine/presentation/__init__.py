"""Presentation layer: response formatting and the command line interface."""
