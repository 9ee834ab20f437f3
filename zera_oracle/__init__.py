"""
Zera Oracle

A centralized price authority for Solana token mints: stores the current
price per mint, serves it publicly, accepts audited admin writes and pushes
live changes to subscribers over Server-Sent Events.
"""
__version__ = "0.1.0"
