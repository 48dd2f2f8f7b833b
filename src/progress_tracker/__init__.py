"""Progress aggregation and plan reconciliation for construction projects."""
