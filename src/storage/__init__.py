"""Storage backends for registry entities and import audit rows."""
