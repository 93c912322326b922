"""Correlation label injection into docker compose files."""

import asyncio
from pathlib import Path
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
import structlog
import yaml

from redeployer.errors import DeploymentError, ErrorKind

logger = structlog.get_logger()

_YAML11_SCALAR_TAGS = {
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
}


class ComposeLoader(yaml.SafeLoader):
    """SafeLoader resolving plain scalars by the YAML 1.2 core schema.

    Docker compose reads YAML 1.2, where `2222:22` is a string and `on` is not
    a boolean. The stock SafeLoader follows YAML 1.1 and would turn the first
    into a base-60 integer.
    """


ComposeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _YAML11_SCALAR_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:int",
    re.compile(r"^(?:[-+]?[0-9]+|0o[0-7]+|0x[0-9a-fA-F]+)$"),
    list("-+0123456789"),
)
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:float",
    re.compile(
        r"^(?:[-+]?(?:\.[0-9]+|[0-9]+(?:\.[0-9]*)?)(?:[eE][-+]?[0-9]+)?"
        r"|[-+]?\.(?:inf|Inf|INF)|\.(?:nan|NaN|NAN))$"
    ),
    list("-+0123456789."),
)


def _construct_int(loader: ComposeLoader, node: yaml.ScalarNode) -> int:
    # Leading zeros are decimal in YAML 1.2; only 0o and 0x change the base
    value = loader.construct_scalar(node)
    if value.startswith(("0o", "0x")):
        return int(value, 0)
    return int(value, 10)


ComposeLoader.add_constructor("tag:yaml.org,2002:int", _construct_int)


def load_compose(content: str) -> Any:
    """Parse a compose document the way docker compose reads it."""
    return yaml.load(content, Loader=ComposeLoader)  # noqa: S506


class ComposeUnit(BaseModel):
    """The part of a compose unit we touch. Every other key is kept as-is."""

    model_config = ConfigDict(extra="allow")

    labels: list[str] | None = None


def add_labels(document: Any, compose_name: str, labels: list[str]) -> dict[str, Any]:
    """Append `labels` to `services[compose_name].labels` in a parsed document.

    Existing labels are kept and never deduplicated, so tagging twice yields
    the label twice. The document is modified in place and returned.

    Raises:
        DeploymentError: KEY naming the first missing or mistyped key.
    """
    if not isinstance(document, dict) or not isinstance(document.get("services"), dict):
        raise DeploymentError(ErrorKind.KEY, "services")

    services = document["services"]
    if compose_name not in services:
        raise DeploymentError(ErrorKind.KEY, compose_name)

    raw_unit = services[compose_name]
    if not isinstance(raw_unit, dict):
        raise DeploymentError(ErrorKind.KEY, f"{compose_name} (as map)")

    try:
        unit = ComposeUnit.model_validate(raw_unit)
    except ValidationError as e:
        raise DeploymentError(ErrorKind.KEY, f"{compose_name} labels (as sequence)") from e

    # Assign into the original mapping so key order and unknown fields survive
    raw_unit["labels"] = [*(unit.labels or []), *labels]
    return document


class ComposeTagger:
    """Rewrites a live directory's compose file with a service's correlation label."""

    def __init__(self, compose_file_name: str = "docker-compose.yaml"):
        self.compose_file_name = compose_file_name

    def compose_path(self, live_dir: Path) -> Path:
        return live_dir / self.compose_file_name

    async def tag(self, live_dir: Path, compose_name: str, labels: list[str]) -> Path:
        """Tag the compose file in `live_dir`. File IO runs in a worker thread."""
        path = self.compose_path(live_dir)
        await asyncio.to_thread(self._rewrite, path, compose_name, labels)
        logger.info("compose_file_tagged", path=str(path), compose_name=compose_name)
        return path

    def _rewrite(self, path: Path, compose_name: str, labels: list[str]) -> None:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DeploymentError(ErrorKind.COMMAND, str(e)) from e

        try:
            document = load_compose(content)
        except yaml.YAMLError as e:
            raise DeploymentError(ErrorKind.YAML, str(e)) from e

        add_labels(document, compose_name, labels)

        try:
            rendered = yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
        except yaml.YAMLError as e:
            raise DeploymentError(ErrorKind.YAML, str(e)) from e

        try:
            path.write_text(rendered, encoding="utf-8")
        except OSError as e:
            raise DeploymentError(ErrorKind.COMMAND, str(e)) from e
