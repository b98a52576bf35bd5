"""Utility modules for the API layer.

- **responses**: JSON response classes using orjson
"""
