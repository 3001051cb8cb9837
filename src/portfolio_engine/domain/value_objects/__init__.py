"""
Value objects for the portfolio engine domain.
"""

from .cancellation import CancellationToken
from .asset_model import AssetModel, build_asset_model, realized_annual_return

__all__ = [
    "CancellationToken",
    "AssetModel",
    "build_asset_model",
    "realized_annual_return",
]
