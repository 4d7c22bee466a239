"""
Reusable leaf steps.

Each step reads its collaborators (cluster client, helper, Vault, Consul)
from the execution context and reports failures as ``Err`` results.
"""

from nosqldb_operator.steps.consul_step import (
    ConsulSettingsStep,
    maintenance_consul_service_step,
    register_consul_service_step,
)
from nosqldb_operator.steps.nodes_step import NODES, StoreNodesStep
from nosqldb_operator.steps.pvc_step import PVC_NAMES, CreatePVCStep
from nosqldb_operator.steps.recycler_step import PVRecyclerStep
from nosqldb_operator.steps.vault_steps import (
    CreateDBEngineStep,
    MoveSecretToVaultStep,
    SetPasswordFromVaultRoleStep,
)

__all__ = [
    "CreatePVCStep",
    "PVC_NAMES",
    "PVRecyclerStep",
    "StoreNodesStep",
    "NODES",
    "MoveSecretToVaultStep",
    "CreateDBEngineStep",
    "SetPasswordFromVaultRoleStep",
    "ConsulSettingsStep",
    "register_consul_service_step",
    "maintenance_consul_service_step",
]
