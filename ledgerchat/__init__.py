"""
ledgerchat - Conversational Transaction Staging

Turns free-text financial requests into verified, currency-correct
accounting records (income, expense, invoice, project, client).

DESIGN PRINCIPLES:
1. AI proposes → Human confirms → System executes
2. Ambiguity is escalated, never guessed
3. No record is created without explicit confirmation
4. Every step must be auditable
5. Storage and rate services are swappable
"""

__version__ = "1.0.0"
__author__ = "ledgerchat Team"
