"""
vibechecc backend.

Share vibes, rate them with emoji, follow people and get notified.
"""

__version__ = "0.1.0"
