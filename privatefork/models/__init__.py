"""Pydantic models for tokens and GitHub payloads."""
