"""
Raffle Backend
Interval-driven raffle: entries, oracle randomness, pooled payouts
"""

__version__ = "1.0.0"
