"""Domain layer: template variants, date rules, and task materialization.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
