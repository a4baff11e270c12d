"""Core domain: configuration, types, parsing and collection assembly."""
