"""
Policy set and request generation for benchmark test cases.

Both policies and requests are drawn from seeded random generators, so the
same configuration always yields the same policy files and the same request
sequence.
"""

import json
import random
from pathlib import Path

from engine.filesystem import ENGINE_CONFIG_FILE, POLICY_SUFFIX
from engine.protocol import AuthorizationRequest

from .definitions import PolicyGeneratorConfiguration

DEFAULT_ALGORITHM = "DENY_UNLESS_PERMIT"

SUBJECTS = ["alice", "bob", "carol", "dave", "erin"]
ACTIONS = ["read", "write", "delete", "execute"]


def write_engine_config(directory: Path, algorithm: str = DEFAULT_ALGORITHM) -> Path:
    """Write the shared engine configuration artifact into directory."""
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / ENGINE_CONFIG_FILE
    with open(target, "w") as f:
        json.dump({"algorithm": algorithm, "variables": {}}, f, indent=2)
    return target


class PolicyGenerator:
    """Generates policy documents and authorization requests for one test case."""

    def __init__(self, config: PolicyGeneratorConfiguration):
        self.config = config
        self._request_rng = random.Random(config.seed)

    @property
    def variables(self) -> list[str]:
        return [f"x{i}" for i in range(self.config.variable_pool_count)]

    def _build_target(self, rng: random.Random) -> list[list[dict]]:
        """One DNF target with logical_variable_count literals in total."""
        count = min(self.config.logical_variable_count, self.config.variable_pool_count)
        chosen = rng.sample(self.variables, count)

        target: list[list[dict]] = [[]]
        for variable in chosen:
            if target[-1] and rng.random() < self.config.disjunction_probability:
                target.append([])
            target[-1].append({
                "variable": variable,
                "negated": rng.random() < self.config.negation_probability,
            })
        return target

    def generate_policy(self, index: int, rng: random.Random) -> dict:
        entitlement = "PERMIT" if rng.random() < self.config.permit_probability else "DENY"
        return {
            "name": f"policy_{index}",
            "entitlement": entitlement,
            "target": self._build_target(rng),
        }

    def generate_policies(self, target_dir: Path) -> list[Path]:
        """Write policy_count policy documents into target_dir.

        Stale policy files from an earlier generation are removed first.
        """
        target_dir.mkdir(parents=True, exist_ok=True)
        for stale in target_dir.glob(f"*{POLICY_SUFFIX}"):
            stale.unlink()

        rng = random.Random(self.config.seed)
        written = []
        for index in range(self.config.policy_count):
            path = target_dir / f"policy_{index:05d}{POLICY_SUFFIX}"
            with open(path, "w") as f:
                json.dump(self.generate_policy(index, rng), f)
            written.append(path)
        return written

    def create_request(self) -> AuthorizationRequest:
        """Synthesize the next authorization request."""
        rng = self._request_rng
        resource = {
            variable: rng.random() >= self.config.false_probability
            for variable in self.variables
        }
        return AuthorizationRequest(
            subject=rng.choice(SUBJECTS),
            action=rng.choice(ACTIONS),
            resource=resource,
        )
