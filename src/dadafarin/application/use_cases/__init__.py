"""Use cases: transport-independent business operations."""
