"""
Payments domain

Checkout, callback verification and status polling for the online channels.
"""
