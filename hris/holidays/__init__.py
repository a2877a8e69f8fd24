"""Public holiday calendar — models and provider service."""
