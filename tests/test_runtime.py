# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Tests for DockerRuntime against a mocked Docker client."""

from unittest.mock import MagicMock, Mock

import docker
import pytest
import requests

from guidecheck.paths import ContainerDefaults, ContainerPaths
from guidecheck.runtime import DockerRuntime, RuntimeLaunchError, RuntimeTimeout


@pytest.fixture
def container():
    container = MagicMock()
    container.name = "guidecheck-1-20250101T000000-000"
    container.logs.return_value = iter([b"line one\nline ", b"two\n", b"tail"])
    container.wait.return_value = {"StatusCode": 0}
    return container


@pytest.fixture
def client(container):
    client = MagicMock()
    client.containers.run.return_value = container
    client.containers.get.return_value = container
    return client


@pytest.fixture
def script_path(tmp_path):
    path = tmp_path / "install.sh"
    path.write_text("#!/bin/bash\n")
    return path


class TestLaunch:
    def test_runs_script_read_only_with_bash(self, client, script_path):
        DockerRuntime(client).launch("ubuntu:focal", script_path, "guidecheck-x")

        args, kwargs = client.containers.run.call_args
        assert args == ("ubuntu:focal",)
        assert kwargs["name"] == "guidecheck-x"
        assert kwargs["detach"] is True
        assert kwargs["entrypoint"] == [ContainerPaths.SHELL]
        assert kwargs["command"] == [ContainerPaths.SCRIPT_MOUNT]
        assert kwargs["volumes"] == {
            str(script_path.absolute()): {"bind": ContainerPaths.SCRIPT_MOUNT, "mode": "ro"}
        }
        assert kwargs["labels"] == {ContainerDefaults.RUN_LABEL: "guidecheck-x"}

    def test_returns_exit_status(self, client, container, script_path):
        container.wait.return_value = {"StatusCode": 2}
        outcome = DockerRuntime(client).launch("img", script_path, "guidecheck-x", timeout=30)

        assert outcome.exit_status == 2
        assert outcome.instance_id == "guidecheck-x"
        container.wait.assert_called_once_with(timeout=30)
        client.containers.get.return_value.remove.assert_not_called()

    def test_streams_output_to_log_and_callback(self, client, script_path, tmp_path):
        log_path = tmp_path / "run.log"
        lines = []
        DockerRuntime(client).launch("img", script_path, "n", log_path=log_path, on_output=lines.append)

        assert log_path.read_text() == "line one\nline two\ntail"
        assert lines == ["line one", "line two", "tail"]

    def test_missing_image(self, client, script_path):
        client.containers.run.side_effect = docker.errors.ImageNotFound("no such image")
        with pytest.raises(RuntimeLaunchError, match="not found"):
            DockerRuntime(client).launch("nope", script_path, "n")

    def test_api_error_reports_leftover_container(self, client, script_path):
        client.containers.run.side_effect = docker.errors.APIError("start failed")
        with pytest.raises(RuntimeLaunchError) as excinfo:
            DockerRuntime(client).launch("img", script_path, "n")
        assert excinfo.value.instance_id == "n"

    def test_api_error_without_container(self, client, script_path):
        client.containers.run.side_effect = docker.errors.APIError("create failed")
        client.containers.get.side_effect = docker.errors.NotFound("gone")
        with pytest.raises(RuntimeLaunchError) as excinfo:
            DockerRuntime(client).launch("img", script_path, "n")
        assert excinfo.value.instance_id is None

    def test_timeout_kills_but_keeps_container(self, client, container, script_path):
        container.wait.side_effect = requests.exceptions.ReadTimeout()
        with pytest.raises(RuntimeTimeout) as excinfo:
            DockerRuntime(client).launch("img", script_path, "n", timeout=5)

        assert excinfo.value.instance_id == "n"
        container.kill.assert_called_once()
        container.remove.assert_not_called()

    def test_lost_connection_without_timeout_is_not_a_timeout(self, client, container, script_path):
        container.wait.side_effect = requests.exceptions.ConnectionError("daemon went away")
        with pytest.raises(RuntimeLaunchError, match="Lost connection") as excinfo:
            DockerRuntime(client).launch("img", script_path, "n", timeout=0)

        assert excinfo.value.instance_id == "n"
        assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)
        container.kill.assert_not_called()

    def test_connection_error_with_timeout_is_a_timeout(self, client, container, script_path):
        container.wait.side_effect = requests.exceptions.ConnectionError("read timed out")
        with pytest.raises(RuntimeTimeout, match="within 5s"):
            DockerRuntime(client).launch("img", script_path, "n", timeout=5)
        container.kill.assert_called_once()

    def test_api_error_while_waiting(self, client, container, script_path):
        container.wait.side_effect = docker.errors.APIError("boom")
        with pytest.raises(RuntimeLaunchError, match="Error waiting") as excinfo:
            DockerRuntime(client).launch("img", script_path, "n")
        assert excinfo.value.instance_id == "n"

    def test_interrupt_kills_and_propagates(self, client, container, script_path):
        container.wait.side_effect = KeyboardInterrupt
        with pytest.raises(KeyboardInterrupt):
            DockerRuntime(client).launch("img", script_path, "n")
        container.kill.assert_called_once()
        container.remove.assert_not_called()


class TestDaemonUnavailable:
    def test_from_env_failure(self, monkeypatch):
        monkeypatch.setattr(
            docker, "from_env", Mock(side_effect=docker.errors.DockerException("no socket"))
        )
        with pytest.raises(RuntimeLaunchError, match="Could not connect"):
            DockerRuntime().list_instances()


class TestDestroyAndList:
    def test_destroy_removes_with_force(self, client, container):
        DockerRuntime(client).destroy("n")
        container.remove.assert_called_once_with(force=True)

    def test_destroy_missing_is_ignored(self, client):
        client.containers.get.side_effect = docker.errors.NotFound("gone")
        DockerRuntime(client).destroy("n")

    def test_list_instances(self, client):
        first = MagicMock(status="exited", attrs={"Config": {"Image": "ubuntu:focal"}})
        first.name = "guidecheck-2-20250101T000000-000"
        second = MagicMock(status="running", attrs={"Config": {"Image": "debian:12"}})
        second.name = "guidecheck-1-20250101T000000-000"
        client.containers.list.return_value = [first, second]

        instances = DockerRuntime(client).list_instances()

        client.containers.list.assert_called_once_with(
            all=True, filters={"label": ContainerDefaults.RUN_LABEL}
        )
        assert [instance["run_id"] for instance in instances] == [
            "1-20250101T000000-000",
            "2-20250101T000000-000",
        ]
        assert instances[0]["image"] == "debian:12"
        assert instances[1]["status"] == "exited"
