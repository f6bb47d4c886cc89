import pytest

from mludevplugin.constants import BEST_EFFORT, GUARANTEED, MODE_DEFAULT, SRIOV, TOPOLOGY_AWARE
from mludevplugin.options import Options, parse_flags


def test_defaults():
    opts = parse_flags([], {})
    assert opts == Options()
    assert opts.mode == MODE_DEFAULT
    assert opts.mlu_link_policy == BEST_EFFORT
    assert opts.virtualization_num == 1


def test_single_dash_mode_is_accepted():
    assert parse_flags(["-mode=sriov"], {}).mode == SRIOV
    assert parse_flags(["-mode", "topology-aware"], {}).mode == TOPOLOGY_AWARE


def test_long_flags():
    opts = parse_flags(
        ["--mode", "env-share", "--mlulink-policy", "guaranteed", "--virtualization-num", "4",
         "--enable-console", "--enable-device-type", "--cnmon-path", "/usr/bin/cnmon",
         "--socket-path", "/run/sock", "--node-name", "node-a"],
        {},
    )
    assert opts.mode == "env-share"
    assert opts.mlu_link_policy == GUARANTEED
    assert opts.virtualization_num == 4
    assert opts.enable_console and opts.enable_device_type
    assert opts.cnmon_path == "/usr/bin/cnmon"
    assert opts.socket_path == "/run/sock"
    assert opts.node_name == "node-a"
    assert opts.disable_health_check is False


def test_environment_defaults():
    opts = parse_flags([], {"VIRTUALIZATION_NUM": "6", "NODE_NAME": "node-b"})
    assert opts.virtualization_num == 6
    assert opts.node_name == "node-b"


def test_flag_overrides_environment():
    opts = parse_flags(["--virtualization-num", "2"], {"VIRTUALIZATION_NUM": "6"})
    assert opts.virtualization_num == 2


def test_disable_healthchecks_env():
    assert parse_flags([], {"DP_DISABLE_HEALTHCHECKS": "all"}).disable_health_check is True
    assert parse_flags([], {"DP_DISABLE_HEALTHCHECKS": "xids"}).disable_health_check is False


def test_argv_is_not_mutated():
    argv = ["-mode=sriov"]
    parse_flags(argv, {})
    assert argv == ["-mode=sriov"]


@pytest.mark.parametrize(
    "argv",
    [["--mode", "bogus"], ["--mlulink-policy", "loose"], ["--virtualization-num", "-1"], ["--unknown"]],
)
def test_invalid_input_exits_with_one(argv):
    with pytest.raises(SystemExit) as info:
        parse_flags(argv, {})
    assert info.value.code == 1


def test_help_exits_with_zero():
    with pytest.raises(SystemExit) as info:
        parse_flags(["--help"], {})
    assert info.value.code == 0