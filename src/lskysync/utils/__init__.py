"""Utility helpers for lskysync."""
