"""
Infrastructure Layer
=====================

Adapters for the external services:
- llm: completion service (OpenRouter through the OpenAI SDK)
- syncro: Syncro REST API (directory reads, ticket creation)
"""
