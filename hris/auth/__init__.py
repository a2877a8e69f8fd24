"""Authentication — JWT verification and acting-context dependencies."""
