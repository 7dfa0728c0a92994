"""Workflow catalog: lookup of workflow definitions by id."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

import yaml
from pydantic import ValidationError

from .contracts import WorkflowDefinition
from .errors import CatalogError, UnknownWorkflow
from .templates import referenced_names

logger = logging.getLogger(__name__)

_WORKFLOW_SUFFIXES = {".yaml", ".yml"}


def load_workflow_file(path: str | Path) -> WorkflowDefinition:
    """Parse a single YAML document into a ``WorkflowDefinition``."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise CatalogError(str(path), f"YAML error: {exc}") from exc

    if not isinstance(data, dict):
        raise CatalogError(str(path), "expected a mapping at the top level")
    try:
        return WorkflowDefinition.model_validate(data)
    except ValidationError as exc:
        raise CatalogError(str(path), str(exc)) from exc


def _iter_workflow_files(path: Path) -> Iterator[Path]:
    if path.is_dir():
        yield from sorted(
            p for p in path.iterdir() if p.is_file() and p.suffix in _WORKFLOW_SUFFIXES
        )
    elif path.is_file():
        yield path


def _warn_forward_references(definition: WorkflowDefinition) -> None:
    step_ids = [step.id for step in definition.steps]
    for position, step in enumerate(definition.steps):
        for name in referenced_names(step.input):
            if name in step_ids[position:]:
                logger.warning(
                    f"Step {step.id} of workflow {definition.id} references '{name}', "
                    f"which has not run yet at that point"
                )


class WorkflowCatalog:
    """Maps workflow ids to immutable workflow definitions."""

    def __init__(self, definitions: Optional[Iterable[WorkflowDefinition]] = None) -> None:
        self._definitions: Dict[str, WorkflowDefinition] = {}
        for definition in definitions or ():
            self.add(definition)

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path]) -> "WorkflowCatalog":
        """Load every workflow file found in ``paths``.

        Directories contribute their ``*.yaml``/``*.yml`` files; missing
        paths are ignored with a debug message.
        """
        catalog = cls()
        for raw_path in paths:
            path = Path(raw_path).expanduser()
            if not path.exists():
                logger.debug(f"Catalog path {path} does not exist, skipping")
                continue
            for workflow_file in _iter_workflow_files(path):
                definition = load_workflow_file(workflow_file)
                catalog.add(definition)
                logger.debug(f"Loaded workflow {definition.id} from {workflow_file}")
        return catalog

    def add(self, definition: WorkflowDefinition) -> None:
        if definition.id in self._definitions:
            raise CatalogError(definition.id, "duplicate workflow id")
        _warn_forward_references(definition)
        self._definitions[definition.id] = definition

    def get(self, workflow_id: str) -> WorkflowDefinition:
        """Return the definition for ``workflow_id``.

        Raises:
            UnknownWorkflow: If the id is not registered.
        """
        try:
            return self._definitions[workflow_id]
        except KeyError:
            raise UnknownWorkflow(workflow_id) from None

    def ids(self) -> list[str]:
        return sorted(self._definitions)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._definitions

    def __iter__(self) -> Iterator[WorkflowDefinition]:
        return (self._definitions[i] for i in self.ids())

    def __len__(self) -> int:
        return len(self._definitions)
