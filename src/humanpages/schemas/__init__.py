"""Pydantic schemas: backend entities, wire bodies and operation arguments."""
