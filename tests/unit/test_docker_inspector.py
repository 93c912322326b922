"""Tests for container discovery."""

import json

from fakes import FakeProcessRunner, container
import pytest

from redeployer.docker_inspector import DockerInspector, is_running, parse_container_listing
from redeployer.errors import DeploymentError, ErrorKind
from redeployer.process_runner import CommandResult


def _listing(*containers: dict) -> str:
    return "\n".join(json.dumps(c) for c in containers)


def test_parse_container_listing():
    records = parse_container_listing(_listing(container("blog"), container("shop", "exited")))

    assert [(r.names, r.state) for r in records] == [
        ("blog-app-1", "running"),
        ("shop-app-1", "exited"),
    ]
    assert records[0].labels == "com.docker.compose.project=blog,|||blog|||"


def test_parse_skips_lines_that_do_not_decode():
    output = "\n".join(
        [
            "WARNING: something unrelated",
            json.dumps(container("blog")),
            "",
            json.dumps({"ID": "abc", "State": "running"}),
            json.dumps(container("shop")),
        ]
    )

    records = parse_container_listing(output)

    assert [r.names for r in records] == ["blog-app-1", "shop-app-1"]


def test_parse_ignores_extra_fields():
    line = dict(container("blog"), Ports="0.0.0.0:80->80/tcp", Status="Up 2 hours")

    (record,) = parse_container_listing(json.dumps(line))

    assert record.id == "blog0123abcd"


def test_is_running_with_no_containers():
    assert is_running([], "blog") is False


def test_is_running_requires_running_state():
    records = parse_container_listing(_listing(container("blog", "exited")))

    assert is_running(records, "blog") is False


def test_is_running_matches_the_full_label():
    """A service whose name is a prefix of another does not match it."""
    records = parse_container_listing(_listing(container("blog2")))

    assert is_running(records, "blog") is False
    assert is_running(records, "blog2") is True


def test_is_running_ignores_unlabelled_containers():
    records = parse_container_listing(
        _listing(container("blog", labels="com.docker.compose.project=blog"))
    )

    assert is_running(records, "blog") is False


@pytest.mark.asyncio
async def test_list_containers_runs_docker_ps():
    runner = FakeProcessRunner(containers=[container("blog")])

    records = await DockerInspector(runner).list_containers()

    assert len(records) == 1
    assert runner.calls[0].argv == ["docker", "ps", "--format", "json"]


@pytest.mark.asyncio
async def test_list_containers_failure_status():
    runner = FakeProcessRunner()
    runner.fail("docker", "ps", stderr=b"Cannot connect to the Docker daemon")

    with pytest.raises(DeploymentError) as exc_info:
        await DockerInspector(runner).list_containers()

    assert exc_info.value.kind is ErrorKind.STATUS


@pytest.mark.asyncio
async def test_list_containers_undecodable_output():
    runner = FakeProcessRunner()
    runner.on("docker", "ps", result=CommandResult(returncode=0, stdout=b"\xff\xfe"))

    with pytest.raises(DeploymentError) as exc_info:
        await DockerInspector(runner).list_containers()

    assert exc_info.value.kind is ErrorKind.PARSE


@pytest.mark.asyncio
async def test_list_containers_spawn_failure_propagates():
    runner = FakeProcessRunner()
    runner.on("docker", result=DeploymentError(ErrorKind.COMMAND, "docker: not found"))

    with pytest.raises(DeploymentError) as exc_info:
        await DockerInspector(runner).list_containers()

    assert exc_info.value.kind is ErrorKind.COMMAND
