"""Utility modules for helm-oss."""
