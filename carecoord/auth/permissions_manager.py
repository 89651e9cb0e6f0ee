"""Capability table for care-circle roles"""
from pathlib import Path
from typing import Dict, Optional
import yaml

DEFAULT_CAPABILITIES_FILE = Path(__file__).parent / "capabilities.yml"


class PermissionsManager:
    """Manages role-to-capability mapping from capabilities.yml"""

    def __init__(self, capabilities_file_path: Optional[str] = None):
        path = Path(capabilities_file_path) if capabilities_file_path else DEFAULT_CAPABILITIES_FILE
        data = self._load(path)
        self.role_capabilities: Dict[str, set] = {
            role: set(caps or []) for role, caps in (data.get("roles") or {}).items()
        }
        self.denials: Dict[str, str] = data.get("denials") or {}

    def _load(self, file_path: Path) -> Dict:
        """Load the YAML file; a missing or unreadable table is a deployment error"""
        with open(file_path, "r") as f:
            return yaml.safe_load(f) or {}

    def has_capability(self, role: str, capability: str) -> bool:
        return capability in self.role_capabilities.get(role, set())

    def denial_reason(self, role: str, capability: str) -> str:
        return self.denials.get(capability, f"Role {role} lacks capability '{capability}'")
