"""
Shared infrastructure: logging, resilience and storage protocols.
"""
