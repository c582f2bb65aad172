"""Entry-point scripts: worker launcher and operator CLI."""
