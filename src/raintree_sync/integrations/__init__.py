"""
API clients for the remote systems kept in sync.
"""
