"""Provider adapters implementing the ``Runtime`` contract.

Import the concrete provider from its subpackage, e.g.
``from nodeplane.providers.lambdalabs import LambdaLabsRuntime``.
"""
