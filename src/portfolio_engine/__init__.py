"""
Portfolio Engine - portfolio optimization and risk analytics.

This package contains the calculation engine behind the investment
management platform, organized into clean architectural layers:

- data: Request models, result objects, and the validation gateway
- domain: Return, risk, diversification, optimization and stress services
- infrastructure: Error handling and structured logging
- application: Use cases per endpoint and configuration management
- presentation: JSON response formatting and the command line interface
"""

__version__ = "0.1.0"
__author__ = "Portfolio Analytics Team"
__email__ = "team@portfolio-analytics.dev"

# Package metadata
__title__ = "portfolio-engine"
__description__ = "Portfolio optimization and risk analytics engine"
__license__ = "MIT"

# Version info tuple
VERSION = tuple(map(int, __version__.split('.')))

__all__ = [
    "__version__",
    "VERSION",
]
