"""
Command line interface.
"""

from .main import PortfolioEngineCLI, main

__all__ = ["PortfolioEngineCLI", "main"]
