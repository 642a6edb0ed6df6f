"""
Rig Control - Test Configuration
测试配置

Provides an in-memory transport session that answers shell commands, miner
API calls and scripta config documents the way a Baikal rig would.
"""

import copy
import json
import shlex

import pytest

from rig_control.config import Config
from rig_control.errors import TransportError, TransportErrorKind
from rig_control.transport import TransportSession
from rig_control.adapters.baikal import constants


class FakeSession(TransportSession):
    """Scripted TransportSession with a tiny remote filesystem"""

    def __init__(self, host='10.0.0.5', peer='10.0.0.5'):
        self.host = host
        self.peer = peer
        self.calls = []
        self.rpc = {}
        self.shell = {}
        self.files = {}
        self.fail_on = {}
        self.closed = False

    def execute(self, command, deadline, stdin=None):
        deadline.check(self.host, command)
        self.calls.append((command, stdin))

        for needle, error in self.fail_on.items():
            if needle in command:
                raise error

        if command.startswith('nc '):
            request = json.loads(stdin.decode('utf-8'))
            reply = self.rpc.get(request['command'])
            if reply is None:
                reply = {'STATUS': [{'STATUS': 'E', 'Msg': 'Invalid command'}]}
            return json.dumps(reply) + '\x00'

        if command.startswith('cat > '):
            parts = shlex.split(command)
            self.files[parts[-1]] = stdin.decode('utf-8')
            return ''

        if command.startswith('cat '):
            path = shlex.split(command)[1]
            if path not in self.files:
                raise TransportError(f"cat: {path}: No such file", TransportErrorKind.EXIT_STATUS,
                                     host=self.host, command=command, exit_status=1)
            return self.files[path]

        if command in self.shell:
            return self.shell[command]

        raise TransportError("command not found", TransportErrorKind.EXIT_STATUS,
                             host=self.host, command=command, exit_status=127)

    def peer_address(self):
        return self.peer

    def close(self):
        self.closed = True

    @property
    def commands(self):
        return [c for c, _ in self.calls]


def ok(section=None, records=None, msg='OK'):
    reply = {'STATUS': [{'STATUS': 'S', 'Msg': msg}], 'id': 1}
    if section is not None:
        reply[section] = records
    return reply


SUMMARY = {
    'Elapsed': 3600,
    'MHS 5s': 1234.56789,
    'MHS av': 1200.5,
    'KHS 5s': 1234567.89,
    'KHS av': 1200500.0,
    'Accepted': 120,
    'Rejected': 3,
    'Hardware Errors': 7,
    'Utility': 2.0001,
}


DEV_TEMPERATURES = [60.3, 61.7, 58.9]
DEV_HASHRATES = [400.12346, 411.98761, 422.5]


def make_dev(i):
    return {
        'ASC': i,
        'Name': 'BKLU',
        'ID': i,
        'Temperature': DEV_TEMPERATURES[i % 3],
        'MHS 5s': DEV_HASHRATES[i % 3],
        'Hardware Errors': i * 2,
    }


def make_clock(i):
    return {'STATS': i, 'ID': f'BKLU{i}', 'Chip Count': 16 + i, 'Clock': 300 + i * 10}


def make_pool(i):
    return {
        'POOL': i,
        'URL': f'stratum+tcp://pool{i}.example.com:3333',
        'Status': 'Alive',
        'Priority': i,
        'Getworks': 100 + i,
        'Accepted': 50 + i,
        'Rejected': i,
        'Discarded': 10,
        'Stale': 0,
        'User': f'worker.{i}',
        'Last Share Time': 1520000000 + i,
        'Difficulty Accepted': 12345.678912,
        'Difficulty Rejected': 0.0,
        'Difficulty Stale': 0.0,
        'Last Share Difficulty': 256.0,
        'Stratum Active': i == 0,
        'Algorithm': 'x11',
    }


def stats_reply(devices=3, clocks=3, pools=2):
    return {
        'summary': [ok('SUMMARY', [dict(SUMMARY)])],
        'devs': [ok('DEVS', [make_dev(i) for i in range(devices)])],
        'stats': [ok('STATS', [make_clock(i) for i in range(clocks)])],
        'pools': [ok('POOLS', [make_pool(i) for i in range(pools)])],
        'id': 1,
    }


SYSTEM_INFO_OUTPUT = "\n".join([
    'hostname=baikal-07',
    'mac_address=02:42:AC:11:00:1F',
    'ip_address=192.168.10.27',
    'kernel_version=3.4.113-sun8i',
    'filesystem_version=scripta-1.0.8',
    'product_type=Giant X10',
    'product_version=1.2',
    'uptime=86400.57',
    '',
])

OPTIONS_DOCUMENT = {
    'api-listen': True,
    'api-port': '4028',
    'api-allow': 'W:127.0.0.1',
    'failover-only': True,
    'no-pool-disable': False,
}

POOLS_DOCUMENT = [
    {'url': 'stratum+tcp://x11.eu.example.com:3533', 'user': 'rig.07', 'pass': 'x', 'algo': 'x11'},
    {'url': 'stratum+tcp://x11.us.example.com:3533', 'user': 'rig.07', 'pass': 'x', 'algo': 'quark'},
]


@pytest.fixture
def config():
    return Config(command_timeout=2.0)


@pytest.fixture
def session():
    """Fake Baikal rig with healthy replies"""
    s = FakeSession()
    s.rpc['summary+devs+stats+pools'] = stats_reply()
    s.rpc['version'] = ok('VERSION', [{'SGMiner': '5.6.2-b', 'API': '3.7'}])
    s.rpc['restart'] = ok(msg='Restart')
    s.shell[constants.SYSTEM_INFO_CMD] = SYSTEM_INFO_OUTPUT
    s.shell[constants.MINER_START_CMD] = ''
    s.shell[constants.MINER_STOP_CMD] = ''
    s.shell[constants.REBOOT_CMD.format(minutes=5)] = ''
    s.files[constants.CPU_TEMP_PATH] = '63200\n'
    s.files[constants.OPTIONS_PATH] = json.dumps(OPTIONS_DOCUMENT)
    s.files[constants.POOLS_PATH] = json.dumps(copy.deepcopy(POOLS_DOCUMENT))
    return s
