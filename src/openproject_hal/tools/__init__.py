"""Thin endpoint wrappers over OpenProjectClient."""
