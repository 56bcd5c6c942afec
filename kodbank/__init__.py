"""
KodBank Online Banking

A small online-banking service: registration, bearer-token sessions, and
deposit/withdraw/transfer against fixed-point balances with an append-only
transaction log.
"""

__version__ = "1.0.0"
