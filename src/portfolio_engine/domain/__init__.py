"""
Domain layer of the portfolio engine.
"""
