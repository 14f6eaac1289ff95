"""
Augurion operator tools: market deployment, RevenueVault epoch settlement
and diagnostics for the Augurion Algorand contracts.
"""

__version__ = "0.1.0"
