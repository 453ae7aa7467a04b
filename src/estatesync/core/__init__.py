"""Core domain package for estatesync.

Core contains chunking, the task state machine, scheduling, matching and
aggregation logic without any model-provider or storage-specific code, keeping
the business logic portable.
"""
