"""
salonbook - day-view appointment scheduling for salons and therapy practices.
"""

__version__ = "0.1.0"
