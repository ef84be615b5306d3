"""
salonslots - bookable slot computation for a single salon provider.
"""

__version__ = "0.1.0"
