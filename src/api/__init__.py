"""HTTP integration of the contract engine with FastAPI.

Key components:
- **main**: Application factory serving the generated contract document
- **dependencies**: Contract services wiring and dependency injection
- **openapi**: OpenAPI 3.1 document assembly from declared operations
- **emitter**: Response emission according to resolved response tables
- **middleware**: Centralized error handling with consistent responses
- **schemas**: Error response bodies
- **utils**: orjson response classes
"""
