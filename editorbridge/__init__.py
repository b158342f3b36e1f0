__version__ = "0.3.0"

from .config import BridgeConfig, load_config, resolve_config
from .coordinator import InstanceCoordinator, Phase
from .lifecycle import ServerLifecycle, ServerState
from .probe import probe, wait_until_free
from .service import BridgeService
from .tracker import ChangeTracker, LastChangeInfo, decode_identity

__all__ = [
    "BridgeConfig",
    "BridgeService",
    "ChangeTracker",
    "InstanceCoordinator",
    "LastChangeInfo",
    "Phase",
    "ServerLifecycle",
    "ServerState",
    "__version__",
    "decode_identity",
    "load_config",
    "probe",
    "resolve_config",
    "wait_until_free",
]
