"""Visitor storage adapters.

Routes and services depend on AbstractVisitorStore. The SQLite implementation
delegates nick uniqueness to the database so concurrent registrations cannot
both succeed.
"""
