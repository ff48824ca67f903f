"""Tests for llama-server detection, lifecycle and model selection."""

import io
import subprocess
from unittest import mock

import httpx
import pytest
from rich.console import Console

from axon.errors import ServerStartError
from axon.server import MODEL_FAMILIES, LlamaServer, check_running, select_model, should_show_output


def quiet_console():
    return Console(file=io.StringIO(), force_terminal=False)


class TestCheckRunning:

    def test_running(self):
        with mock.patch("axon.server.httpx.get", return_value=httpx.Response(200)) as get:
            assert check_running("http://127.0.0.1:8080/")
        get.assert_called_once_with("http://127.0.0.1:8080/v1/models", timeout=2.0)

    def test_client_errors_count_as_running(self):
        with mock.patch("axon.server.httpx.get", return_value=httpx.Response(404)):
            assert check_running("http://127.0.0.1:8080")

    def test_server_error(self):
        with mock.patch("axon.server.httpx.get", return_value=httpx.Response(503)):
            assert not check_running("http://127.0.0.1:8080")

    def test_connection_refused(self):
        with mock.patch("axon.server.httpx.get", side_effect=httpx.ConnectError("refused")):
            assert not check_running("http://127.0.0.1:8080")


class TestOutputFilter:

    def test_noise_is_hidden(self):
        assert not should_show_output("slot update_slots: id 0 | task 3")
        assert should_show_output("main: server is listening on http://127.0.0.1:8080")

    def test_debug_shows_everything(self):
        assert should_show_output("slot update_slots: id 0", debug=True)


class TestLlamaServer:

    def make_server(self, **kwargs):
        return LlamaServer("", "http://127.0.0.1:8080", "Qwen/Qwen2.5-Coder-3B-Instruct-GGUF:Q4_K_M",
                           console=quiet_console(), **kwargs)

    def test_command(self):
        assert self.make_server().command == [
            "llama-server", "-hf", "Qwen/Qwen2.5-Coder-3B-Instruct-GGUF:Q4_K_M", "--jinja",
        ]

    def test_already_running(self):
        server = self.make_server()
        with mock.patch("axon.server.check_running", return_value=True), \
                mock.patch("axon.server.subprocess.Popen") as popen:
            assert server.start() is False
        popen.assert_not_called()

    def test_spawn_failure(self):
        server = self.make_server()
        with mock.patch("axon.server.check_running", return_value=False), \
                mock.patch("axon.server.subprocess.Popen", side_effect=FileNotFoundError("llama-server")):
            with pytest.raises(ServerStartError, match="failed to start llama-server"):
                server.start()

    def test_start_waits_for_health(self):
        server = self.make_server()
        process = mock.Mock()
        process.stdout = io.StringIO("loading model\nslot update_slots: noise\n")
        process.poll.return_value = None
        with mock.patch("axon.server.check_running", side_effect=[False, False, True]), \
                mock.patch("axon.server.subprocess.Popen", return_value=process), \
                mock.patch("axon.server.time.sleep"):
            assert server.start() is True
        assert server.process is process

    def test_process_exit_during_startup(self):
        server = self.make_server()
        process = mock.Mock()
        process.stdout = io.StringIO("")
        process.poll.return_value = 1
        process.returncode = 1
        with mock.patch("axon.server.check_running", return_value=False), \
                mock.patch("axon.server.subprocess.Popen", return_value=process), \
                mock.patch("axon.server.time.sleep"):
            with pytest.raises(ServerStartError, match="exited with code 1"):
                server.start()

    def test_wait_for_ready_timeout(self):
        server = self.make_server()
        with mock.patch("axon.server.check_running", return_value=False), \
                mock.patch("axon.server.time.sleep"), \
                mock.patch("axon.server.time.monotonic", side_effect=[0.0, 2.0, 4.0, 6.0]):
            with pytest.raises(ServerStartError, match="timeout waiting for server"):
                server.wait_for_ready(timeout=5.0)

    def test_stop_terminates(self):
        server = self.make_server()
        server.process = mock.Mock()
        server.process.poll.return_value = None
        server.stop()
        server.process.terminate.assert_called_once()
        server.process.kill.assert_not_called()

    def test_stop_kills_after_timeout(self):
        server = self.make_server()
        server.process = mock.Mock()
        server.process.poll.return_value = None
        server.process.wait.side_effect = [subprocess.TimeoutExpired("llama-server", 5), 0]
        server.stop()
        server.process.kill.assert_called_once()

    def test_stop_without_process(self):
        self.make_server().stop()


class TestSelectModel:

    def test_defaults_on_enter(self):
        prompt_fn = mock.Mock(side_effect=["", ""])
        assert select_model(quiet_console(), prompt_fn) == MODEL_FAMILIES[0].sizes[1].model_id

    def test_explicit_choice(self):
        prompt_fn = mock.Mock(side_effect=["2", "3"])
        assert select_model(quiet_console(), prompt_fn) == MODEL_FAMILIES[1].sizes[2].model_id

    def test_invalid_input_reprompts(self):
        console = quiet_console()
        prompt_fn = mock.Mock(side_effect=["9", "abc", "1", "1"])
        assert select_model(console, prompt_fn) == MODEL_FAMILIES[0].sizes[0].model_id
        assert "Invalid choice: 9" in console.file.getvalue()

    def test_configured_model_is_default(self):
        configured = MODEL_FAMILIES[2].sizes[1].model_id
        prompt_fn = mock.Mock(side_effect=["", ""])
        assert select_model(quiet_console(), prompt_fn, configured) == configured

    def test_unlisted_configured_model_is_offered(self):
        console = quiet_console()
        prompt_fn = mock.Mock(side_effect=[""])
        assert select_model(console, prompt_fn, "me/custom-GGUF:Q8_0") == "me/custom-GGUF:Q8_0"
        assert "Configured model" in console.file.getvalue()
        assert f"1-{len(MODEL_FAMILIES) + 1}" in prompt_fn.call_args[0][0]

    def test_catalog_still_selectable_with_unlisted_model(self):
        prompt_fn = mock.Mock(side_effect=["1", ""])
        assert select_model(quiet_console(), prompt_fn, "me/custom-GGUF:Q8_0") == MODEL_FAMILIES[0].sizes[
            MODEL_FAMILIES[0].default_size].model_id
