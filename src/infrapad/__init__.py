"""
infrapad: infrastructure and credential inventory with portable, encrypted
project export/import.
"""

__version__ = "0.1.0"
