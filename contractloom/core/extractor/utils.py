"""Extractor utilities.

Role detection, strategy registry, and directory-walking helpers.
"""

import os
from typing import Dict, Optional, TYPE_CHECKING

from ..constants import ALL_ROLES, ROLE_BRIDGE, ROLE_MARKUP, ROLE_PRIVILEGED, ROLE_UI_SCRIPT

if TYPE_CHECKING:
    from .base import BaseRoleStrategy

SCRIPT_EXTENSIONS = frozenset({".js", ".cjs", ".mjs", ".jsx", ".ts", ".tsx"})
MARKUP_EXTENSIONS = frozenset({".html", ".htm"})

# Main-process entry points generated projects use
PRIVILEGED_STEMS = frozenset({"main", "background", "electron", "main-process"})
BRIDGE_STEMS = frozenset({"preload", "bridge"})

# Directories to skip during file walking
SKIP_DIRECTORIES = frozenset({
    "node_modules",
    "dist",
    "build",
    "out",
    "release",
    "__pycache__",
    "coverage",
})

# Strategy registry, lazy-loaded to avoid import overhead
_strategy_registry: Dict[str, "BaseRoleStrategy"] = {}


def detect_role(file_path: str) -> Optional[str]:
    """Detect a file's role from its name.

    Args:
        file_path: Path to the file

    Returns:
        Role identifier or None for files outside the contract surface
    """
    name = os.path.basename(file_path)
    stem, ext = os.path.splitext(name)
    ext = ext.lower()
    stem = stem.lower()
    if ext in MARKUP_EXTENSIONS:
        return ROLE_MARKUP
    if ext not in SCRIPT_EXTENSIONS:
        return None
    if stem in BRIDGE_STEMS or stem.startswith("preload"):
        return ROLE_BRIDGE
    if stem in PRIVILEGED_STEMS:
        return ROLE_PRIVILEGED
    return ROLE_UI_SCRIPT


def get_strategy(role: str) -> "BaseRoleStrategy":
    """Get the extraction strategy for a file role.

    Raises:
        ValueError: If role is not supported
    """
    if role not in _strategy_registry:
        if role == ROLE_PRIVILEGED:
            from .privileged import PrivilegedProcessStrategy
            _strategy_registry[role] = PrivilegedProcessStrategy()
        elif role == ROLE_BRIDGE:
            from .bridge import BridgeStrategy
            _strategy_registry[role] = BridgeStrategy()
        elif role == ROLE_UI_SCRIPT:
            from .ui_script import UIScriptStrategy
            _strategy_registry[role] = UIScriptStrategy()
        elif role == ROLE_MARKUP:
            from .markup import MarkupStrategy
            _strategy_registry[role] = MarkupStrategy()
        else:
            raise ValueError(f"Unsupported role: {role}. Supported: {list(ALL_ROLES)}")

    return _strategy_registry[role]


def should_skip_directory(dir_name: str) -> bool:
    """Check if a directory should be skipped during file walking."""
    return dir_name in SKIP_DIRECTORIES or dir_name.startswith(".")
