"""Domain services: vendors, reconciliation, change detection, sync pipelines."""
