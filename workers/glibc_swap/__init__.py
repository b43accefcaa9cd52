"""
glibc_swap — build, cache and splice specific glibc versions.

Builds a requested glibc release inside a throwaway Docker container, keeps
the installed tree under a per-version cache directory, and copies or patches
those libraries into a target executable's runtime.

Profile: linux-x86_64-glibc
"""

__version__ = "0.3.0"
PACKAGE_NAME = "glibc_swap"
PROFILE_ID = "linux-x86_64-glibc"
RECEIPT_SCHEMA_VERSION = "0.1"
