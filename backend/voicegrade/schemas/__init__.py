"""Pydantic request/response models for the HTTP API and the upstream provider."""
