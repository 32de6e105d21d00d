"""Utilities module for common helper functions.

This module contains:
- Ignore file handling (.gitignore, .git/info/exclude)
"""

from zengit.utils.ignore import IgnoreMatcher, IgnorePattern, get_ignore_matcher

__all__ = [
    'IgnoreMatcher', 'IgnorePattern', 'get_ignore_matcher',
]
