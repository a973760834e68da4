"""Shared configuration, value types, and timestamp helpers."""
