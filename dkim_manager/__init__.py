"""
dkim-manager

Manages DKIM key pairs declared as DKIMKey custom resources.
"""
