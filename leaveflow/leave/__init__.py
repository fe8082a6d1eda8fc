"""Leave module — catalog, balance ledger and request state machine."""
