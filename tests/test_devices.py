import threading
from itertools import islice

from mludevplugin.cndev import Device
from mludevplugin.constants import HEALTHY, UNHEALTHY
from mludevplugin.devices import (
    DeviceList,
    PluginDevice,
    device_exists,
    generate_fake_devs,
    host_device_exists_with_prefix,
    watch_unhealthy,
)


def origin():
    return Device(slot=2, uuid="MLU-abc", path="/dev/cambricon_dev2", sn="s", mother_board="m")


def test_host_device_exists_with_prefix(tmp_path):
    (tmp_path / "cambricon_ctl0").write_text("")
    assert host_device_exists_with_prefix(str(tmp_path / "cambricon_ctl")) is True
    assert host_device_exists_with_prefix(str(tmp_path / "commu")) is False


def test_device_list_detect(tmp_path):
    dev = tmp_path / "dev"
    dev.mkdir()
    (dev / "cambricon_ctl").write_text("")
    (dev / "commu0").write_text("")
    found = DeviceList.detect(tmp_path)
    assert found == DeviceList(has_ctrl_dev=True, has_commu_dev=True)


def test_generate_fake_devs_env_share():
    devs, infos = generate_fake_devs(origin(), 3, False)
    assert len(devs) == 3
    assert devs[0].id == "MLU-abc-_-1"
    assert [d.id for d in devs] == list(infos)
    assert all(d.health == HEALTHY for d in devs)
    assert all(i.path == "/dev/cambricon_dev2" and i.slot == 2 for i in infos.values())


def test_generate_fake_devs_sriov():
    devs, infos = generate_fake_devs(origin(), 2, True)
    assert devs[1].id == "MLU-abc--fake--2"
    assert infos["MLU-abc--fake--2"].path == "/dev/cambricon_dev2vf2"
    assert {i.uuid for i in infos.values()} == {d.id for d in devs}


def test_generate_fake_devs_zero():
    assert generate_fake_devs(origin(), 0, False) == ([], {})


def test_device_exists():
    devs = [PluginDevice("a"), PluginDevice("b", UNHEALTHY)]
    assert device_exists(devs, "b") is True
    assert device_exists(devs, "c") is False


def test_watch_reports_unhealthy_then_recovery():
    states = {"d0": iter([1, 0, 1]), "d1": iter([1, 1, 1])}
    devices = [Device(slot=0, uuid="d0"), Device(slot=1, uuid="d1")]
    events = list(islice(watch_unhealthy(devices, lambda d: next(states[d.uuid]), interval=0), 2))
    assert events == [PluginDevice("d0", UNHEALTHY), PluginDevice("d0", HEALTHY)]


def test_watch_treats_errors_as_unhealthy():
    def broken(dev):
        raise RuntimeError("query failed")

    events = list(islice(watch_unhealthy([Device(uuid="d0")], broken, interval=0), 1))
    assert events == [PluginDevice("d0", UNHEALTHY)]


def test_watch_alternates_while_still_failing():
    events = list(islice(watch_unhealthy([Device(uuid="d0")], lambda d: 0, interval=0), 3))
    assert [e.health for e in events] == [UNHEALTHY, HEALTHY, UNHEALTHY]


def test_watch_stops_when_event_set():
    stop = threading.Event()
    stop.set()
    assert list(watch_unhealthy([Device(uuid="d0")], lambda d: 0, stop, 0)) == []


def test_watch_stops_after_round():
    stop = threading.Event()
    calls = []

    def state(dev):
        calls.append(dev.uuid)
        stop.set()
        return 1

    assert list(watch_unhealthy([Device(uuid="d0")], state, stop, 0)) == []
    assert calls == ["d0"]