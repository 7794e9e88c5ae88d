"""
Subscription conversion gateway.
"""
