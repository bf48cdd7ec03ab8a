"""LambdaLabs Cloud provider.

Example:
    from nodeplane.providers.lambdalabs import LambdaLabs, LambdaLabsRuntime

    runtime = LambdaLabsRuntime.create(api_key, LambdaLabs())
    node_types = await runtime.list_node_types()
"""

from .client import LambdaLabsClient
from .config import LambdaLabs
from .provider import LambdaLabsRuntime

__all__ = ["LambdaLabs", "LambdaLabsClient", "LambdaLabsRuntime"]
