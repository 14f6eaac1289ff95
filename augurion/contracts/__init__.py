"""
PyTeal contract sources and their compiled templates.

Compile with:
  augurion-compile [--build-dir build]
Outputs, per contract:
  build/<Name>.approval.teal
  build/<Name>.clear.teal
  build/<Name>.arc4.json
"""

import argparse
import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import pyteal as pt
from algosdk import abi, transaction

from ..config import (
    BUILD_DIR,
    MARKET_GLOBAL_BYTES,
    MARKET_GLOBAL_INTS,
    MARKET_LOCAL_BYTES,
    MARKET_LOCAL_INTS,
    VAULT_GLOBAL_BYTES,
    VAULT_GLOBAL_INTS,
)
from . import market, vault

TEAL_VERSION = 8   # boxes need >= 8


@dataclass(frozen=True)
class ContractTemplate:
    """Everything the deployer needs to create one application instance."""
    name: str
    approval_teal: str
    clear_teal: str
    contract: abi.Contract
    global_schema: transaction.StateSchema
    local_schema: transaction.StateSchema

    def method(self, name: str) -> abi.Method:
        return self.contract.get_method_by_name(name)


def _compile(router: pt.Router):
    return router.compile_program(
        version=TEAL_VERSION,
        optimize=pt.OptimizeOptions(scratch_slots=True),
    )


@lru_cache(maxsize=None)
def market_template() -> ContractTemplate:
    approval_program, clear_program, contract = _compile(market.router)
    return ContractTemplate(
        name="AugurionMarket",
        approval_teal=approval_program,
        clear_teal=clear_program,
        contract=contract,
        global_schema=transaction.StateSchema(num_uints=MARKET_GLOBAL_INTS, num_byte_slices=MARKET_GLOBAL_BYTES),
        local_schema=transaction.StateSchema(num_uints=MARKET_LOCAL_INTS, num_byte_slices=MARKET_LOCAL_BYTES),
    )


@lru_cache(maxsize=None)
def vault_template() -> ContractTemplate:
    approval_program, clear_program, contract = _compile(vault.router)
    return ContractTemplate(
        name="RevenueVault",
        approval_teal=approval_program,
        clear_teal=clear_program,
        contract=contract,
        global_schema=transaction.StateSchema(num_uints=VAULT_GLOBAL_INTS, num_byte_slices=VAULT_GLOBAL_BYTES),
        local_schema=transaction.StateSchema(num_uints=0, num_byte_slices=0),
    )


def write_template(template: ContractTemplate, build_dir: Path) -> None:
    """Write approval + clear programs and the ABI JSON."""
    os.makedirs(build_dir, exist_ok=True)

    approval_path = Path(build_dir) / f"{template.name}.approval.teal"
    with open(approval_path, "w") as f:
        f.write(template.approval_teal)
    print(f"[OK] Approval TEAL written to {approval_path}")

    clear_path = Path(build_dir) / f"{template.name}.clear.teal"
    with open(clear_path, "w") as f:
        f.write(template.clear_teal)
    print(f"[OK] Clear TEAL written to {clear_path}")

    abi_path = Path(build_dir) / f"{template.name}.arc4.json"
    with open(abi_path, "w") as f:
        f.write(json.dumps(template.contract.dictify(), indent=2))
    print(f"[OK] ABI JSON written to {abi_path}")


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Compile the Augurion contracts to TEAL")
    parser.add_argument("--build-dir", default=str(BUILD_DIR), help="Output directory")
    args = parser.parse_args(argv)

    for template in (market_template(), vault_template()):
        write_template(template, Path(args.build_dir))


if __name__ == "__main__":
    main()
