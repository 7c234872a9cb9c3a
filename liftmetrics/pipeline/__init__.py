"""Ingestion and metrics pipeline for LiftMetrics.

Sequential, revision-gated refresh of the OpenIPF dataset followed by a
single-transaction recomputation of every derived table.
"""
