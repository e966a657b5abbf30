"""
AI insight generation.

Prompt construction, provider adapters, pricing and the orchestrator
that fans requests out to one or two providers.
"""
