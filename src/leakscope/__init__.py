"""Scope-aware secret scanning on top of gitleaks.

leakscope helps you:
- Scan only what is about to be committed (staged or all uncommitted changes)
- Scan a CI commit range and report only secrets the range introduced
- Merge findings from several engine runs without duplicates
- Write JSON, CSV, SARIF, JUnit and HTML reports
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
