"""Small parsing helpers shared by the endpoint wrappers."""
