"""
Asset Approval Service - Data Asset Governance Workflow

A review and approval service for data assets and access requests providing:
- A single authoritative collection of submissions (datasets, APIs, streams, models)
- Steward decisions: approve, reject, request revision, escalate, comment
- Deterministic auto-approval rules and reviewer routing
- Real-time synchronization with the backing database service
"""

__version__ = "0.1.0"
