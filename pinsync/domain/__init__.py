"""Domain Layer: bookmark entities, value objects, events, errors and ports.

Has no dependencies on the infrastructure or core layers.
"""
