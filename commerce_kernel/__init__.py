"""
Commerce Kernel

Shared infrastructure for the commercial document workflow engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Database base classes and session management
- Injectable clock and identity generation
- Durable monotonic sequences
"""

__version__ = "0.1.0"
