"""
HTTP API for Raintree Sync.
"""
