"""Chain-of-custody audit ledger."""
