"""
Rynn HTTP API Service

This package discovers handler modules on disk, binds each one to an
HTTP method and path, and serves them behind a uniform JSON envelope.

Architecture:
- server.py: FastAPI application setup
- config.py: Process configuration and settings document loading
- models.py: Pydantic descriptor and catalog models
- contract.py: Module contract and validation
- discovery.py: Recursive plugin discovery
- binder.py: Route registration and conflict detection
- catalog.py: Category-grouped catalog of loaded modules
- envelope.py: Response envelope applied at JSON serialization
- context.py: Request/response context handed to handlers
- errors.py: Error hierarchy and HTTP error boundary
"""
