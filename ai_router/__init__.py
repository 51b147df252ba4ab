"""
AI Request Router - tier-aware routing of generation requests to AI providers.
"""

__version__ = "0.1.0"
