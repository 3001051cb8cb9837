"""
Data layer for the portfolio engine.

- models: pydantic request/snapshot models and result dataclasses
- validators: the validation gateway enforcing every request contract
"""
