"""
Access gate — single shared secret checked before the quiz is unlocked.
"""

from lovebrain.access.gate import AccessGate

__all__ = ["AccessGate"]
