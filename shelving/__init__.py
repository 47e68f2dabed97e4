from .core import ShelvingStore
from .config import StoreConfig
from .router import MockApiRouter
from .cloud import CloudSnapshotBridge
from .models import ApiResponse
from .admin import AdminConsole
