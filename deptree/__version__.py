"""
deptree version information.

Single source of truth for the package version. Follows Semantic
Versioning: https://semver.org/
"""

__version__ = "0.2.0"
