"""ORM models for the reimbursement kernel."""

from reimburse_kernel.models.attachment import AttachmentBlobModel
from reimburse_kernel.models.dataset_state import DatasetStateModel
from reimburse_kernel.models.request import (
    AttachmentRefModel,
    HistoryEntryModel,
    RequestItemModel,
    RequestModel,
    SignatureModel,
)
from reimburse_kernel.models.template import (
    TemplateFieldModel,
    catalog_from_models,
    catalog_to_models,
)
from reimburse_kernel.models.user import UserModel

__all__ = [
    "AttachmentBlobModel",
    "AttachmentRefModel",
    "DatasetStateModel",
    "HistoryEntryModel",
    "RequestItemModel",
    "RequestModel",
    "SignatureModel",
    "TemplateFieldModel",
    "UserModel",
    "catalog_from_models",
    "catalog_to_models",
]
