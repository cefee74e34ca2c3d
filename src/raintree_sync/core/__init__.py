"""
Configuration and command line tooling for Raintree Sync.
"""
