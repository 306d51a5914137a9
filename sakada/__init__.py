"""
Sakada Cash Advance

Cash-advance request, approval and repayment tracking for payroll/HR.
"""

__version__ = "0.1.0"
