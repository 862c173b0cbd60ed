# Services module
from schemehub.services.auth_service import AuthService
from schemehub.services.product_service import ProductService
from schemehub.services.distributor_service import DistributorService
from schemehub.services.scheme_service import SchemeService
from schemehub.services.scheme_export_service import SchemeExportService
from schemehub.services.dashboard_service import DashboardService
from schemehub.services.filter_preset_service import FilterPresetService

# Master data sync
from schemehub.services.data_sync_service import DataSyncService, SyncSupervisor, sync_supervisor

__all__ = [
    "AuthService",
    "ProductService",
    "DistributorService",
    "SchemeService",
    "SchemeExportService",
    "DashboardService",
    "FilterPresetService",
    # Sync
    "DataSyncService",
    "SyncSupervisor",
    "sync_supervisor",
]
