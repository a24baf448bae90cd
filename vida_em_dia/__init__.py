"""
Vida em Dia - Core Package

The deterministic core of a household-finance assistant: a conversational
action pipeline and a credit-limit projection engine.

DESIGN PRINCIPLES:
1. Assistant proposes → Human confirms (within 5 minutes) → System executes
2. Nothing mutates without an explicit, unexpired confirmation
3. Every failure ends in a friendly message, never a raw error
4. Every significant step is auditable
5. Storage and remote collaborators are swappable
"""

__version__ = "1.0.0"
__author__ = "Vida em Dia Team"
