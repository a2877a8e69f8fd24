"""HRIS leave engine: chargeable days, policies, balances and request lifecycle."""
