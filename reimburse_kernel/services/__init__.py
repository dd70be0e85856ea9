"""Collaborator services for the reimbursement kernel (write side)."""

from reimburse_kernel.services.attachment_store import SqlAttachmentStore
from reimburse_kernel.services.dataset_store import SqlDatasetStore
from reimburse_kernel.services.user_directory import InMemoryUserDirectory

__all__ = [
    "InMemoryUserDirectory",
    "SqlAttachmentStore",
    "SqlDatasetStore",
]
