"""
app/sync package.

Synchronization and reconciliation engine: pagination, normalization,
natural-key reconciliation, mapping resolution, run tracking, guarded
cross-system actions and error classification.
"""
