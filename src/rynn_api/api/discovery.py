"""Recursive discovery of plugin modules on disk."""

import importlib.machinery
import importlib.util
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import List, Union

from .contract import LoadedModule, validate_module
from .errors import InvalidModuleError, ModuleError, ModuleLoadError
from .models import ModuleFailure

logger = logging.getLogger(__name__)

DEFAULT_MODULE_EXTENSION = ".py"
MODULE_NAME_PREFIX = "rynn_plugins_"


@dataclass
class DiscoveryReport:
    """Outcome of one discovery pass."""

    root: str
    modules: List[LoadedModule] = field(default_factory=list)
    failures: List[ModuleFailure] = field(default_factory=list)

    def record_failure(self, error: ModuleError) -> None:
        self.failures.append(
            ModuleFailure(source=error.source, kind=error.kind, message=error.reason)
        )


def _module_name(root: Path, file_path: Path) -> str:
    relative = file_path.relative_to(root).with_suffix("")
    slug = re.sub(r"\W", "_", "_".join(relative.parts))
    return MODULE_NAME_PREFIX + slug


def _is_candidate_dir(path: Path) -> bool:
    return not (path.name == "__pycache__" or path.name.startswith("."))


def _is_candidate_file(path: Path, extension: str) -> bool:
    return path.suffix == extension and not path.name.startswith(("_", "."))


def load_module_file(file_path: Path, module_name: str) -> ModuleType:
    """Import a single plugin file.

    The module is registered in ``sys.modules`` under ``module_name`` while it
    executes and stays there only if the import succeeds.

    Raises:
        ModuleLoadError: If the file cannot be imported
    """
    source = str(file_path)
    loader = importlib.machinery.SourceFileLoader(module_name, str(file_path))
    spec = importlib.util.spec_from_file_location(module_name, file_path, loader=loader)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(source, "no import loader for this file")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise ModuleLoadError(source, f"{type(exc).__name__}: {exc}") from exc
    return module


def discover(
    root_dir: Union[str, Path], extension: str = DEFAULT_MODULE_EXTENSION
) -> DiscoveryReport:
    """Walk a plugin tree and load every module that satisfies the contract.

    The walk is depth-first with entries sorted by name. A file that fails to
    import or fails validation, and a directory that cannot be listed, is
    logged and recorded in the report; neither stops the walk.

    Args:
        root_dir: Root directory of the plugin tree
        extension: File extension that marks a plugin module

    Returns:
        Loaded modules in traversal order plus the skipped files
    """
    root = Path(root_dir)
    report = DiscoveryReport(root=str(root))

    if not root.is_dir():
        logger.warning(f"Module directory {root} does not exist; no modules loaded")
        return report

    def walk(directory: Path) -> None:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            error = ModuleLoadError(str(directory), f"cannot read directory: {exc}")
            logger.error(f"Error loading {error.source}: {error.reason}")
            report.record_failure(error)
            return

        for entry in entries:
            if entry.is_dir():
                if _is_candidate_dir(entry):
                    walk(entry)
                continue
            if not _is_candidate_file(entry, extension):
                continue

            try:
                module = load_module_file(entry, _module_name(root, entry))
                report.modules.append(validate_module(module, str(entry)))
            except InvalidModuleError as exc:
                logger.warning(f"Skipped {exc.source} (invalid module format: {exc.reason})")
                report.record_failure(exc)
            except ModuleLoadError as exc:
                logger.error(f"Error loading {exc.source}: {exc.reason}")
                report.record_failure(exc)

    walk(root)
    return report
