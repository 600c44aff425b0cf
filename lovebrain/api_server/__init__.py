"""
API server package — HTTP interface.

Validates request shape, delegates to the ranking engine and access gate, and
wraps results in the {"success": ..., "message": ...} envelope clients expect.
"""
