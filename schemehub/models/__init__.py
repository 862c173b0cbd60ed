from schemehub.models.user import User, UserRole
from schemehub.models.product import Product
from schemehub.models.distributor import Distributor
from schemehub.models.scheme import (
    Scheme,
    SchemeHistory,
    SchemeStatus,
    DistributorType,
    HistoryAction,
)
from schemehub.models.filter_preset import FilterPreset

__all__ = [
    "User",
    "UserRole",
    "Product",
    "Distributor",
    "Scheme",
    "SchemeHistory",
    "SchemeStatus",
    "DistributorType",
    "HistoryAction",
    "FilterPreset",
]
