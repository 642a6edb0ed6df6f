"""
Unit Tests for the Baikal response parser
Baikal响应解析单元测试
"""

import json
from decimal import Decimal

import pytest

from conftest import (OPTIONS_DOCUMENT, POOLS_DOCUMENT, SUMMARY, SYSTEM_INFO_OUTPUT, make_clock,
                      make_dev, make_pool, ok, stats_reply)
from rig_control import rpc_codec
from rig_control.adapters.baikal import parser
from rig_control.errors import MalformedResponseError


def decoded(reply):
    """Run a fixture reply through the codec so numbers are Decimal"""
    return rpc_codec.decode(json.dumps(reply).encode('utf-8'))


def sections(**overrides):
    reply = decoded(stats_reply(**overrides))
    return rpc_codec.split_multi(reply, ['summary', 'devs', 'stats', 'pools'])


class TestSystemInfo:

    def test_parse(self):
        info = parser.parse_system_info(SYSTEM_INFO_OUTPUT, '5.6.2-b')
        assert info.hostname == 'baikal-07'
        assert info.mac_address == '02:42:ac:11:00:1f'
        assert info.kernel_version == '3.4.113-sun8i'
        assert info.filesystem_version == 'scripta-1.0.8'
        assert info.product_type == 'Giant X10'
        assert info.miner_version == '5.6.2-b'
        assert info.uptime_seconds == 86400

    def test_missing_field(self):
        output = SYSTEM_INFO_OUTPUT.replace('kernel_version=3.4.113-sun8i\n', '')
        with pytest.raises(MalformedResponseError) as exc_info:
            parser.parse_system_info(output, '5.6.2-b')
        assert exc_info.value.field == 'kernel_version'

    def test_bad_mac(self):
        output = SYSTEM_INFO_OUTPUT.replace('02:42:AC:11:00:1F', 'cat: no such file')
        with pytest.raises(MalformedResponseError) as exc_info:
            parser.parse_system_info(output, '5.6.2-b')
        assert exc_info.value.field == 'mac_address'

    def test_empty_uptime_is_unknown(self):
        output = SYSTEM_INFO_OUTPUT.replace('uptime=86400.57', 'uptime=')
        assert parser.parse_system_info(output, 'x').uptime_seconds is None

    def test_version(self):
        assert parser.parse_version(ok('VERSION', [{'SGMiner': '5.6.2-b', 'API': '3.7'}])) == '5.6.2-b'

    def test_version_without_miner_field(self):
        with pytest.raises(MalformedResponseError):
            parser.parse_version(ok('VERSION', [{'API': '3.7'}]))


class TestStats:

    def test_full_report(self):
        report = parser.parse_stats_report(sections(), temp_cpu=Decimal('63.2'))
        assert report.summary.mhs_5s == Decimal('1234.56789')
        assert report.summary.hardware_errors == 7
        assert len(report.devs) == len(report.stats) == 3
        assert [c.chip_count for c in report.stats] == [16, 17, 18]
        assert report.pools[0].stratum_active is True
        assert report.pools[1].priority == 1
        assert report.temp_cpu == Decimal('63.2')

    def test_khs_derived_from_mhs_when_absent(self):
        summary = dict(SUMMARY)
        del summary['KHS 5s']
        del summary['KHS av']
        result = parser.parse_summary(decoded(ok('SUMMARY', [summary])))
        assert result.khs_5s == Decimal('1234567.89000')
        assert result.khs_av == Decimal('1200500.0')

    def test_missing_required_field_not_defaulted(self):
        summary = dict(SUMMARY)
        del summary['Accepted']
        with pytest.raises(MalformedResponseError) as exc_info:
            parser.parse_summary(decoded(ok('SUMMARY', [summary])))
        assert exc_info.value.field == 'Accepted'

    def test_wrong_type(self):
        dev = make_dev(0)
        dev['Temperature'] = 'hot'
        with pytest.raises(MalformedResponseError) as exc_info:
            parser.parse_devs(decoded(ok('DEVS', [dev])))
        assert exc_info.value.field == 'Temperature'

    @pytest.mark.parametrize('value', ['--5', '²', '1_000', '', '4.5'])
    def test_malformed_integer_strings(self, value):
        summary = dict(SUMMARY)
        summary['Elapsed'] = value
        with pytest.raises(MalformedResponseError) as exc_info:
            parser.parse_summary(decoded(ok('SUMMARY', [summary])))
        assert exc_info.value.field == 'Elapsed'

    def test_negative_integer_string(self):
        clock = make_clock(0)
        clock['Clock'] = '-1'
        assert parser.parse_clock_stats(ok('STATS', [clock]))[0].clock == -1

    def test_numeric_strings_accepted(self):
        clock = make_clock(0)
        clock['Clock'] = '300'
        assert parser.parse_clock_stats(ok('STATS', [clock]))[0].clock == 300

    def test_bool_rejected_for_counts(self):
        pool = make_pool(0)
        pool['Accepted'] = True
        with pytest.raises(MalformedResponseError):
            parser.parse_pools(decoded(ok('POOLS', [pool])))

    def test_missing_section(self):
        with pytest.raises(MalformedResponseError):
            parser.parse_devs(ok())

    def test_summary_must_be_single_record(self):
        with pytest.raises(MalformedResponseError):
            parser.parse_summary(ok('SUMMARY', []))

    def test_report_needs_every_command(self):
        partial = sections()
        del partial['stats']
        with pytest.raises(MalformedResponseError):
            parser.parse_stats_report(partial)

    def test_cpu_temperature_millidegrees(self):
        assert parser.parse_cpu_temperature('63200\n') == Decimal('63.2')

    def test_cpu_temperature_garbage(self):
        with pytest.raises(MalformedResponseError):
            parser.parse_cpu_temperature('')


class TestSettingsDocuments:

    def test_miner_options(self):
        setting = parser.parse_miner_setting(json.dumps(OPTIONS_DOCUMENT))
        assert setting == parser.MinerSettingRaw(
            api_listen=True, api_port='4028', api_allow='W:127.0.0.1',
            failover_only=True, no_pool_disable=False,
        )

    def test_numeric_port_normalised(self):
        setting = parser.parse_miner_setting('{"api-port": 4028}')
        assert setting.api_port == '4028'
        assert setting.api_listen is None

    def test_options_must_be_object(self):
        with pytest.raises(MalformedResponseError):
            parser.parse_miner_setting('[]')

    def test_invalid_json(self):
        with pytest.raises(MalformedResponseError):
            parser.parse_miner_setting('{api-port')

    def test_pools_in_order(self):
        pools = parser.parse_pool_settings(json.dumps(POOLS_DOCUMENT))
        assert [p.algo for p in pools] == ['x11', 'quark']
        assert pools[0].password == 'x'

    def test_pool_without_url(self):
        with pytest.raises(MalformedResponseError) as exc_info:
            parser.parse_pool_settings('[{"user": "w"}]')
        assert exc_info.value.field == 'url'

    def test_options_document_keeps_every_key(self):
        document = parser.parse_options_document('{"api-listen": true, "scan-time": 30}')
        assert document == {'api-listen': True, 'scan-time': 30}

    def test_dump_merges_over_current_document(self):
        current = {'api-listen': True, 'api-allow': 'W:0/0', 'scan-time': 30, 'kernel': 'x11mod'}
        setting = parser.MinerSettingRaw(api_listen=False, api_port='4029')
        assert json.loads(parser.dump_miner_setting(setting, current)) == {
            'api-listen': False, 'api-port': '4029', 'scan-time': 30, 'kernel': 'x11mod',
        }
        assert current['api-listen'] is True

    def test_dump_round_trip(self):
        setting = parser.parse_miner_setting(json.dumps(OPTIONS_DOCUMENT))
        pools = parser.parse_pool_settings(json.dumps(POOLS_DOCUMENT))
        assert parser.parse_miner_setting(parser.dump_miner_setting(setting).decode()) == setting
        assert parser.parse_pool_settings(parser.dump_pool_settings(pools).decode()) == pools
