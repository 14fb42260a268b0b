"""
Behavior Analytics: per-account behavioral scoring for token transfers.

Ingests transfer events, keeps a running profile per account, classifies
behavior flags (rapid trading, large volume, suspicious pattern, whale
activity, dormant reactivation) and derives risk and loyalty scores.
"""

__version__ = "0.1.0"
