"""
MDMC Music Ads CRM API.
"""
__version__ = "1.0.0"
