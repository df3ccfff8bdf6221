"""Gateway / CoGateway redeem-and-unstake toolkit.

Architecture:
    gateway/
    ├── __init__.py      # Package entry, version
    ├── core.py          # Primitives: sha256, canonical JSON, YAML, schemas
    ├── schemas/         # JSON Schemas for scenario files
    └── cogateway/       # Redeem message life-cycle and balance protocol

Reference implementation. Production deployments settle on-chain and may
differ while conforming to the same message and balance semantics.
"""

__version__ = "0.5.0"
