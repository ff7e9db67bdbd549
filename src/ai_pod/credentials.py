"""Scan a workspace for files that look like credentials.

Everything in the workspace is visible inside the container, so the CLI
warns before mounting a directory that holds keys or secrets.
"""

import os
from pathlib import Path

CREDENTIAL_NAMES = frozenset(
    {
        ".env",
        ".env.local",
        ".env.production",
        ".env.staging",
        "id_rsa",
        "id_ed25519",
        "id_ecdsa",
        "id_dsa",
        ".npmrc",
        ".pypirc",
        ".netrc",
        "credentials.json",
        "service-account.json",
        "terraform.tfstate",
    }
)

CREDENTIAL_EXTENSIONS = frozenset({"pem", "key", "p12", "pfx", "jks", "keystore", "tfvars"})

CREDENTIAL_PATH_FRAGMENTS = (".aws/credentials", ".aws/config", ".ssh/", ".gnupg/")

SKIP_DIRS = frozenset({"node_modules", ".git", "target", "__pycache__", ".venv", "venv"})

MAX_DEPTH = 5


def is_credential_file(path: Path) -> bool:
    name = path.name
    if not name:
        return False
    if name in CREDENTIAL_NAMES:
        return True
    if path.suffix and path.suffix[1:] in CREDENTIAL_EXTENSIONS:
        return True
    path_str = path.as_posix()
    return any(fragment in path_str for fragment in CREDENTIAL_PATH_FRAGMENTS)


def scan_workspace(workspace: Path, max_depth: int = MAX_DEPTH) -> list[Path]:
    """Credential-looking files under workspace, sorted."""
    found: list[Path] = []
    root_depth = len(workspace.parts)

    for dirpath, dirnames, filenames in os.walk(workspace, followlinks=False):
        current = Path(dirpath)
        depth = len(current.parts) - root_depth
        # Prune in place so os.walk never descends
        dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS and depth + 1 < max_depth]
        for filename in filenames:
            path = current / filename
            if path.is_file() and is_credential_file(path):
                found.append(path)

    return sorted(found)
