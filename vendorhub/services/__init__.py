"""Domain services layered on the storage abstraction."""
