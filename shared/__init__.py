"""Shared models, configuration, registry and error types for SoundRelay."""
