"""Operator-invoked batch jobs."""
