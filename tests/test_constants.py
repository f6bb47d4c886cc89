from mludevplugin import constants


def test_server_sock_lives_in_plugin_dir():
    assert constants.SERVER_SOCK.startswith(constants.DEVICE_PLUGIN_PATH)
    assert constants.SERVER_SOCK.endswith("cambricon.sock")


def test_modes_are_distinct_and_include_default():
    modes = constants.MODES
    assert all(modes.count(mode) == 1 for mode in modes)
    assert modes.count(constants.MODE_DEFAULT) == 1
    assert constants.MLU_SHARE.startswith("mlu-share")
    assert modes.count(constants.MLU_SHARE) == 1


def test_policies_order():
    policies = constants.POLICIES
    assert policies.index("best-effort") == 0
    assert policies.index("restricted") == 1
    assert policies.index("guaranteed") == 2
    assert len(policies) == 3


def test_device_names_are_dev_paths():
    names = [
        constants.MLU_MONITOR_DEVICE_NAME,
        constants.MLU_DEVICE_NAME,
        constants.MLU_MSGQ_DEVICE_NAME,
        constants.MLU_RPC_DEVICE_NAME,
        constants.MLU_CMSG_DEVICE_NAME,
        constants.MLU_IPCM_DEVICE_NAME,
        constants.MLU_COMMU_DEVICE_NAME,
        constants.MLU_UART_CONSOLE_DEVICE_NAME,
        constants.MLU_SPLIT_DEVICE_NAME,
    ]
    assert all(name.startswith("/dev/") for name in names)
    assert constants.MLU_RPMSG_DIR.endswith("/")