"""Tests for the adb wrapper and the ADB provider."""
import subprocess
import threading

import pytest

from callwatch.core import adb
from callwatch.core.adb import AdbClient, AdbDevice, AdbError
from callwatch.core.adb_provider import AdbProvider, normalize_number
from callwatch.core.provider import ProviderError


class FakeRun:
    """Stand-in for subprocess.run returning canned output."""

    def __init__(self, stdout=b"", returncode=0, stderr=b"", exc=None):
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr
        self.exc = exc
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        if self.exc:
            raise self.exc
        return subprocess.CompletedProcess(cmd, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def fake_run(monkeypatch):
    def install(**kwargs):
        run = FakeRun(**kwargs)
        monkeypatch.setattr(adb.subprocess, "run", run)
        return run
    return install


class TestAdbClient:
    def test_list_devices(self, fake_run):
        fake_run(stdout=(
            b"* daemon started successfully\n"
            b"List of devices attached\n"
            b"192.168.1.5:5555\tdevice\n"
            b"emulator-5554\toffline\n\n"
        ))
        devices = AdbClient().list_devices()
        assert devices == [AdbDevice("192.168.1.5:5555", "device"), AdbDevice("emulator-5554", "offline")]
        assert devices[0].is_ready and not devices[1].is_ready

    def test_shell_builds_command(self, fake_run):
        run = fake_run(stdout=b"  dump text \n")
        output = AdbClient(adb_path="/opt/adb").shell("SER1", "dumpsys telecom")
        assert output == "dump text"
        assert run.calls == [["/opt/adb", "-s", "SER1", "shell", "dumpsys", "telecom"]]

    def test_connect(self, fake_run):
        run = fake_run(stdout=b"connected to 10.0.0.2:5555\n")
        AdbClient().connect("10.0.0.2")
        assert run.calls == [["adb", "connect", "10.0.0.2:5555"]]

    def test_connect_refused(self, fake_run):
        fake_run(stdout=b"failed to connect to '10.0.0.2:5555': Connection refused\n")
        with pytest.raises(AdbError, match="Failed to connect"):
            AdbClient().connect("10.0.0.2")

    def test_nonzero_exit(self, fake_run):
        fake_run(returncode=1, stderr=b"error: device offline")
        with pytest.raises(AdbError, match="device offline"):
            AdbClient().shell("SER1", "dumpsys telecom")

    def test_missing_binary(self, fake_run):
        fake_run(exc=FileNotFoundError("adb"))
        with pytest.raises(AdbError, match="not found"):
            AdbClient().list_devices()

    def test_timeout(self, fake_run):
        fake_run(exc=subprocess.TimeoutExpired(["adb"], 1))
        with pytest.raises(AdbError, match="timed out"):
            AdbClient().list_devices()


class FakeAdbClient:
    """AdbClient double with scripted shell failures."""

    def __init__(self, devices=None, shell_failures=0):
        self.devices = devices if devices is not None else [AdbDevice("SER1", "device")]
        self.shell_failures = shell_failures
        self.connects = []
        self.commands = []

    def connect(self, host, port=5555):
        self.connects.append((host, port))

    def list_devices(self):
        return self.devices

    def shell(self, serial, command, timeout=None):
        self.commands.append((serial, command))
        if self.shell_failures > 0:
            self.shell_failures -= 1
            raise AdbError("closed")
        return "output"


class TestNormalizeNumber:
    def test_strips_formatting(self):
        assert normalize_number("+1 (555) 123-4567") == "+15551234567"
        assert normalize_number("*67.555") == "*67555"

    @pytest.mark.parametrize("number", ["", "abc", "555; reboot", "55$(id)", "1+2"])
    def test_rejects_undialable(self, number):
        with pytest.raises(ValueError):
            normalize_number(number)


class TestAdbProvider:
    def test_connect_picks_first_ready_device(self):
        client = FakeAdbClient(devices=[AdbDevice("A", "offline"), AdbDevice("B", "device")])
        provider = AdbProvider(host="10.0.0.2", client=client)
        provider.connect()
        assert provider.get_info().serial == "B"
        assert client.connects == [("10.0.0.2", 5555)]

    def test_configured_serial_must_exist(self):
        provider = AdbProvider(serial="Z", client=FakeAdbClient())
        with pytest.raises(ProviderError, match="Z not found"):
            provider.connect()

    def test_no_devices(self):
        provider = AdbProvider(client=FakeAdbClient(devices=[]))
        with pytest.raises(ProviderError, match="No adb devices"):
            provider.get_telecom_dump()

    def test_dump_command(self):
        client = FakeAdbClient()
        assert AdbProvider(client=client).get_telecom_dump() == "output"
        assert client.commands == [("SER1", "dumpsys telecom")]

    def test_reconnects_once_on_failure(self):
        client = FakeAdbClient(shell_failures=1)
        provider = AdbProvider(host="10.0.0.2", client=client)
        assert provider.get_telecom_dump() == "output"
        assert len(client.commands) == 2
        assert len(client.connects) == 2

    def test_second_failure_raises(self):
        client = FakeAdbClient(shell_failures=2)
        with pytest.raises(ProviderError, match="after reconnect"):
            AdbProvider(client=client).get_telecom_dump()

    def test_call_control_commands(self):
        client = FakeAdbClient()
        provider = AdbProvider(client=client)
        provider.dial("+1 555-0100")
        provider.dial("*123#")
        provider.end_call()
        provider.accept_call()
        assert [command for _, command in client.commands] == [
            "am start -a android.intent.action.CALL -d tel:+15550100",
            "am start -a android.intent.action.CALL -d tel:*123%23",
            "input keyevent KEYCODE_ENDCALL",
            "input keyevent KEYCODE_CALL",
        ]

    def test_invalid_number_never_reaches_device(self):
        client = FakeAdbClient()
        with pytest.raises(ValueError):
            AdbProvider(client=client).dial("123 && reboot")
        assert client.commands == []

    def test_disconnect_waits_for_running_command(self):
        client = FakeAdbClient()
        provider = AdbProvider(client=client)
        provider.connect()
        seen = {}

        def shell(serial, command, timeout=None):
            other = threading.Thread(target=provider.disconnect)
            other.start()
            other.join(timeout=0.2)
            seen["blocked"] = other.is_alive()
            seen["serial"] = serial
            seen["thread"] = other
            return "output"

        client.shell = shell
        assert provider.get_telecom_dump() == "output"
        seen["thread"].join(timeout=5.0)

        assert seen["blocked"]
        assert seen["serial"] == "SER1"
        assert provider.get_info().serial is None
