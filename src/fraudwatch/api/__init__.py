"""
FraudWatch HTTP API.
"""
