"""Dramatiq background tasks package."""

# Broker must be configured before any actor is declared
import subsku.tasks.broker  # noqa: F401

# Import all tasks to register them with Dramatiq (must be after broker setup)
import subsku.tasks.webhooks  # noqa: E402, F401
