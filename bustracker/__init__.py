"""
Bus Tracker: GPS location ingestion and retrieval for a bus fleet
"""

__version__ = "1.0.0"
