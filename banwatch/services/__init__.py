"""Services package - store, Steam access, reconciliation and registry."""
