"""
Access Review Service

Access certification campaign engine providing:
- Campaign lifecycle (draft, in review, submitted, completed)
- Per-item and bulk decisions with high-risk skip rules
- Risk-scored review suggestions
- Second-level approval for privileged access
- Remediation tracking and verification
"""

__version__ = "1.0.0"
__service__ = "access_review_service"
