"""
reimburse_services -- coordinating layer over the reimbursement engines.

Usage:
    from reimburse_services import ReimbursementApp, build_app
"""

from reimburse_services.app import ReimbursementApp
from reimburse_services.bootstrap import build_app

__all__ = ["ReimbursementApp", "build_app"]
