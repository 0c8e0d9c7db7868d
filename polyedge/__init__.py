"""
PolyEdge drop/hedge arbitrage engine.

Watches pairs of binary prediction markets, buys a simulated first leg
when one side's ask drops sharply, and buys the opposite leg once both
legs together cost less than the hedge ceiling, locking in 1 - cost
per share at settlement.
"""

__version__ = "1.0.0"
