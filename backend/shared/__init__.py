"""Shared configuration, models, errors and utilities for the Cricket Live relay."""
