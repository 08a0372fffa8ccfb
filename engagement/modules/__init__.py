# Tutoring Center Engagement Core - Modules Package
"""
Business logic modules of the engagement core: badge scanning and attendance
resolution, report composition and the delivery queue.
"""

__version__ = "1.0.0"
