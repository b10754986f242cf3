"""
treemirror Utilities

Logging, hashing and transfer primitives, ignore-file handling and progress
reporting.

Author: treemirror Project
License: MIT
"""
