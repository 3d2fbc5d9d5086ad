"""
mediagrab - format resolution and download service for social media URLs
"""

__version__ = "1.0.0"
