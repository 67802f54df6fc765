"""Data model, retry policies, latency tracking and ACL types."""
