"""
Core modules for the AI request router.

This package contains tier policy, quota accounting, provider selection
and the router that composes them.
"""
