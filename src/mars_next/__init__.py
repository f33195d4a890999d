"""
MARS Next -- multi-agent rounds with synthesis and usage accounting.

One user prompt is sent to several AI agents concurrently, their answers are
merged by a synthesis call, and every inference call is recorded in a usage
ledger.
"""

__version__ = "0.1.0"
