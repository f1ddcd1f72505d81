"""
x402 facilitator for Aptos
Verifies and settles signed Aptos transfer transactions for the x402 payment protocol
"""

__version__ = "0.1.0"
