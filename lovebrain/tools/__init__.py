"""
Operational tools — population seeding.
"""
