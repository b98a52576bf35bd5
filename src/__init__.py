"""DTO Contract - metadata-driven API contract engine.

Payload types and operations declare their wire contract once; the
engine derives everything else from those declarations.

Architecture Overview:
- **Contract Layer**: Metadata records, response resolution, schema and
  validation-rule derivation, value normalization
- **API Layer**: FastAPI integration serving the contract document,
  emitting responses and rendering errors
- **Core Layer**: Configuration, logging, exceptions and shared types
"""
