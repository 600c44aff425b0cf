"""
Core utilities — shared constants and application exceptions.

Used across the database layer, ranking engine, access gate, and API server.
"""
