"""
FormSheet Web - HTTP surface for form submissions
"""

from formsheet_core.version import __version__
