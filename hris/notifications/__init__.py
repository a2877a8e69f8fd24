"""In-app notifications for leave workflow events."""
