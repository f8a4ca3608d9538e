"""
QuickCompare - grocery price comparison across quick-commerce platforms.
"""

__version__ = "0.1.0"
