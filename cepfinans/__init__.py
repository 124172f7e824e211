"""
CepFinans - Source Package

The personal-finance core behind the CepFinans app: recurring
transactions, account balances and the dashboard figures built on them.

DESIGN PRINCIPLES:
1. Domain logic is pure (same inputs → same outputs)
2. The controller owns state, storage only persists it
3. Optimistic updates are always rolled back on failure
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "CepFinans Team"
