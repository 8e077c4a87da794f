"""Pydantic models for the application: API contracts, session progress and job payloads."""
