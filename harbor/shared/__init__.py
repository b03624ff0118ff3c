"""Shared models and utilities for Harbor services."""
