"""
Page Mirror - capture a rendered web page as a self-contained local copy.

This package renders a page with a headless browser, collects its stylesheets,
scripts and images, downloads them once each, and rewrites every reference so
the saved copy renders offline.
"""

__version__ = "1.0.0"
__author__ = "Page Mirror Team"
