"""nodeplane - a control plane for GPU nodes on cloud providers.

Example:

    from nodeplane import ControlPlaneModule, Services, load_settings
    from nodeplane.api import create_app
    from injector import Injector

    settings = load_settings()
    services = Injector([ControlPlaneModule(settings)]).get(Services)
    app = create_app(services)
"""

from nodeplane.config import Settings, load_settings
from nodeplane.errors import (
    BadRequestError,
    CapacityExhaustedError,
    Error,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    UnknownError,
)
from nodeplane.module import ControlPlaneModule, Services, create_injector
from nodeplane.runtime import EnvInitializer, Initializer, Runtime, StaticInitializer
from nodeplane.types import (
    Node,
    NodeSpecs,
    NodeType,
    RuntimeProvider,
    Session,
    SessionCreateParams,
    SessionStatus,
    SSHKey,
)

__version__ = "0.1.0"

__all__ = [
    "BadRequestError",
    "CapacityExhaustedError",
    "ControlPlaneModule",
    "EnvInitializer",
    "Error",
    "ForbiddenError",
    "Initializer",
    "InternalError",
    "Node",
    "NodeSpecs",
    "NodeType",
    "NotFoundError",
    "Runtime",
    "RuntimeProvider",
    "SSHKey",
    "Services",
    "Session",
    "SessionCreateParams",
    "SessionStatus",
    "Settings",
    "StaticInitializer",
    "UnauthorizedError",
    "UnknownError",
    "create_injector",
    "load_settings",
]
