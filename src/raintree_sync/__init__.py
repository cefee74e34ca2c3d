"""
Raintree Sync - bi-directional record synchronization between the Partner
and Raintree Salesforce orgs.
"""

__version__ = "0.1.0"
