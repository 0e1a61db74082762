"""
DeepBook v3 expired-order janitor.

Walks DeepBook pools on Sui, finds resting orders whose expiry has passed and
submits cleanup transactions to collect their storage rebates.
"""

__version__ = "0.1.0"
