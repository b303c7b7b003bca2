"""
AI chat oracle: a deterministic chat work queue with a single AI consumer.
"""

__version__ = "0.1.0"
