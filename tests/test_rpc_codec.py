"""
Unit Tests for the miner API codec
矿机API编解码单元测试
"""

import json
from decimal import Decimal

import pytest

from rig_control import rpc_codec
from rig_control.errors import ProtocolError


class TestEncode:

    def test_request_shape(self):
        assert json.loads(rpc_codec.encode('Summary ')) == {'command': 'summary', 'parameter': ''}

    def test_parameter_passed_through(self):
        assert json.loads(rpc_codec.encode('switchpool', '1'))['parameter'] == '1'

    def test_multi_joins_with_plus(self):
        request = json.loads(rpc_codec.encode_multi(['summary', 'devs', 'stats']))
        assert request['command'] == 'summary+devs+stats'

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            rpc_codec.encode('  ')


class TestDecode:
    """Response parsing with firmware quirks"""

    def test_trailing_null_bytes(self):
        raw = b'{"STATUS":[{"STATUS":"S"}],"SUMMARY":[{"MHS 5s":1234.56789}]}\x00\x00'
        result = rpc_codec.decode(raw)
        assert result['SUMMARY'][0]['MHS 5s'] == Decimal('1234.56789')

    def test_floats_keep_vendor_precision(self):
        result = rpc_codec.decode(b'{"v": 0.1}')
        assert isinstance(result['v'], Decimal)
        assert str(result['v']) == '0.1'

    def test_missing_comma_between_objects(self):
        raw = b'{"STATUS":[{"STATUS":"S"}],"STATS":[{"ID":"a"}{"ID":"b"}]}'
        result = rpc_codec.decode(raw)
        assert [s['ID'] for s in result['STATS']] == ['a', 'b']

    def test_empty_response(self):
        with pytest.raises(ProtocolError):
            rpc_codec.decode(b'\x00')

    def test_garbage_response(self):
        with pytest.raises(ProtocolError) as exc_info:
            rpc_codec.decode(b'sh: nc: not found', command='summary')
        assert exc_info.value.command == 'summary'

    def test_non_object_response(self):
        with pytest.raises(ProtocolError):
            rpc_codec.decode(b'[1, 2]')


class TestCheckStatus:

    def test_success_statuses(self):
        for code in ('S', 'I'):
            response = {'STATUS': [{'STATUS': code}]}
            assert rpc_codec.check_status(response) is response

    def test_error_status_carries_message(self):
        response = {'STATUS': [{'STATUS': 'E', 'Msg': 'Invalid command'}]}
        with pytest.raises(ProtocolError) as exc_info:
            rpc_codec.check_status(response, 'restart')
        assert exc_info.value.status == 'E'
        assert exc_info.value.msg == 'Invalid command'
        assert exc_info.value.retryable is False

    def test_missing_status(self):
        with pytest.raises(ProtocolError):
            rpc_codec.check_status({'SUMMARY': []})


class TestSplitMulti:

    def test_sections_returned_per_command(self):
        response = {
            'summary': [{'STATUS': [{'STATUS': 'S'}], 'SUMMARY': [{}]}],
            'devs': [{'STATUS': [{'STATUS': 'S'}], 'DEVS': []}],
        }
        result = rpc_codec.split_multi(response, ['summary', 'devs'])
        assert set(result) == {'summary', 'devs'}
        assert result['devs']['DEVS'] == []

    def test_missing_section(self):
        response = {'summary': [{'STATUS': [{'STATUS': 'S'}]}]}
        with pytest.raises(ProtocolError) as exc_info:
            rpc_codec.split_multi(response, ['summary', 'devs'])
        assert exc_info.value.command == 'devs'

    def test_failed_section(self):
        response = {'summary': [{'STATUS': [{'STATUS': 'E', 'Msg': 'no'}]}]}
        with pytest.raises(ProtocolError):
            rpc_codec.split_multi(response, ['summary'])


class TestDecodeKeyValues:

    def test_lines(self):
        text = "hostname=baikal\n\nversion=a=b\nempty=\n"
        assert rpc_codec.decode_key_values(text) == {'hostname': 'baikal', 'version': 'a=b', 'empty': ''}

    def test_line_without_separator(self):
        with pytest.raises(ProtocolError):
            rpc_codec.decode_key_values("hostname=baikal\ngarbage\n")
