"""Core infrastructure package for shared application functionality.

This package provides the foundational components used across all layers
of the contract engine:

- **config**: Centralized configuration management with environment support
- **constants**: Content types, marker keys and schema prefixes
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Structured logging with Loguru
- **types**: Type aliases for better code clarity

These modules implement cross-cutting concerns that ensure consistency
throughout the application.
"""
