"""
Approval Quorum Engine

Multi-party approval for banking transactions: quorum evaluation,
optimistic-concurrency vote intake and a hash-chained audit trail.
"""

__version__ = "1.0.0"
