"""
Lovebrain — ranking backend for the relationship-dependency self-assessment.

Turns a user's five dimension scores into percentile ranks against a
reference population, with an estimated fallback when the population
store is unreachable. Exposed over HTTP by the API server package.
"""

__version__ = "2.1.0"
