"""Webhook events and their dispatch to the engine flows."""
