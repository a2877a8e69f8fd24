"""Leave engine — chargeable days, policies, accrual, balances and request lifecycle."""
