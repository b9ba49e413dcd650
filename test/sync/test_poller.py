#  cloud-dyndns - Keep cloud DNS records pointed at a dynamic IP address
#  Copyright (C) 2023 Dominick C. Pastore
#
#  This program is free software: you can redistribute it and/or modify
#  it under the terms of the GNU General Public License as published by
#  the Free Software Foundation, either version 3 of the License, or
#  (at your option) any later version.
#
#  This program is distributed in the hope that it will be useful,
#  but WITHOUT ANY WARRANTY; without even the implied warranty of
#  MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#  GNU General Public License for more details.
#
#  You should have received a copy of the GNU General Public License
#  along with this program.  If not, see <https://www.gnu.org/licenses/>.

import logging
import queue
import threading
import time

import pytest

import doubles
from cloud_dyndns import (ConfigError, IPAddressPoller, IPDetectionError,
                          IPType, WebConsensus)


def make_poller(sequence, **config):
    source = doubles.ScriptedIPSource(sequence)
    return IPAddressPoller('test', config, source=source), source


class TestConfig:

    def test_defaults(self):
        poller, _ = make_poller(['192.0.2.1'])
        assert poller.iptype is IPType.IPV4
        assert poller.poll_interval == 300
        assert poller.log.name == 'cloud_dyndns.poller.test'

    @pytest.mark.parametrize('value, expected', [
        ('4', IPType.IPV4),
        ('IPv4', IPType.IPV4),
        ('6', IPType.IPV6),
        ('inet6', IPType.IPV6),
    ])
    def test_family(self, value, expected):
        poller, _ = make_poller(['192.0.2.1'], family=value)
        assert poller.iptype is expected

    @pytest.mark.parametrize('config', [
        {'family': '5'},
        {'interval': 'hourly'},
        {'interval': '0'},
    ])
    def test_invalid(self, config):
        with pytest.raises(ConfigError):
            make_poller(['192.0.2.1'], **config)

    def test_default_source(self):
        """Test a web consensus source is built from the same config when
        none is given"""
        poller = IPAddressPoller('test', {'urls': 'http://a/ http://b/',
                                          'quorum': '1'})
        assert isinstance(poller.source, WebConsensus)
        assert poller.source.urls == ['http://a/', 'http://b/']
        assert poller.source.quorum == 1


class TestPoll:

    def test_delivers_to_all(self):
        poller, source = make_poller(['192.0.2.1'])
        subs = [poller.channel() for _ in range(3)]
        assert poller.poll() == '192.0.2.1'
        assert [s.get_nowait() for s in subs] == ['192.0.2.1'] * 3
        assert source.calls == [IPType.IPV4]

    def test_slow_subscriber_keeps_old_value(self):
        """Two subscribers; only the first consumes between polls. The second
        keeps the first address and never sees the second."""
        poller, _ = make_poller(['1.2.3.4', '5.6.7.8'])
        sub1 = poller.channel()
        sub2 = poller.channel()

        poller.poll()
        assert sub1.get_nowait() == '1.2.3.4'

        poller.poll()
        assert sub1.get_nowait() == '5.6.7.8'
        assert sub2.get_nowait() == '1.2.3.4'
        assert sub2.empty()

    def test_poll_never_blocks(self):
        """Test polling repeatedly with nobody reading does not block"""
        poller, _ = make_poller(['192.0.2.1', '192.0.2.2', '192.0.2.3'])
        sub = poller.channel()
        for _ in range(3):
            poller.poll()
        assert sub.get_nowait() == '192.0.2.1'
        with pytest.raises(queue.Empty):
            sub.get_nowait()

    def test_failure_notifies_nobody(self):
        poller, _ = make_poller([IPDetectionError("no consensus")])
        sub = poller.channel()
        with pytest.raises(IPDetectionError,
                           match="could not obtain IP address: no consensus"):
            poller.poll()
        assert sub.empty()

    def test_wrong_family(self):
        poller, _ = make_poller(['2001:db8::1'])
        sub = poller.channel()
        with pytest.raises(IPDetectionError):
            poller.poll()
        assert sub.empty()

    def test_ipv6(self):
        poller, source = make_poller(['2001:db8:0::1'], family='6')
        sub = poller.channel()
        assert poller.poll() == '2001:db8::1'
        assert sub.get_nowait() == '2001:db8::1'
        assert source.calls == [IPType.IPV6]

    def test_no_subscribers(self):
        poller, _ = make_poller(['192.0.2.1'])
        assert poller.poll() == '192.0.2.1'

    def test_late_subscriber(self):
        """Test a subscriber registered after a poll gets only later
        addresses"""
        poller, _ = make_poller(['192.0.2.1', '192.0.2.2'])
        early = poller.channel()
        poller.poll()
        late = poller.channel()
        assert late.empty()
        early.get_nowait()
        poller.poll()
        assert late.get_nowait() == '192.0.2.2'
        assert early.get_nowait() == '192.0.2.2'


class TestRun:

    def test_immediate_poll_then_stop(self):
        """Test run polls right away and returns once stopped"""
        poller, source = make_poller(['192.0.2.1'], interval='3600')
        sub = poller.channel()
        stop = threading.Event()
        thread = threading.Thread(target=poller.run, args=(stop,))
        thread.start()

        assert sub.get(timeout=5) == '192.0.2.1'
        stop.set()
        thread.join(5)
        assert not thread.is_alive()
        assert source.call_count == 1

    def test_stop_already_set(self):
        """Test run still does its first poll when stop is already set"""
        poller, source = make_poller(['192.0.2.1'], interval='3600')
        stop = threading.Event()
        stop.set()
        assert poller.run(stop) is None
        assert source.call_count == 1

    def test_repeats_on_interval(self):
        poller, source = make_poller(
            ['192.0.2.1', '192.0.2.2', '192.0.2.3'], interval='0.01')
        sub = poller.channel()
        stop = threading.Event()
        thread = threading.Thread(target=poller.run, args=(stop,))
        thread.start()

        seen = []
        while len(seen) < 3:
            seen.append(sub.get(timeout=5))
        stop.set()
        thread.join(5)
        assert not thread.is_alive()
        assert source.call_count >= 3
        assert seen[0] == '192.0.2.1'
        assert set(seen) <= {'192.0.2.1', '192.0.2.2', '192.0.2.3'}

    def test_failures_do_not_stop_loop(self, caplog):
        """Test failed polls are logged and the loop carries on"""
        poller, source = make_poller(
            [IPDetectionError("down"), IPDetectionError("still down"),
             '192.0.2.1'],
            interval='0.01')
        sub = poller.channel()
        stop = threading.Event()
        with caplog.at_level(logging.ERROR, logger='cloud_dyndns.poller.test'):
            thread = threading.Thread(target=poller.run, args=(stop,))
            thread.start()
            assert sub.get(timeout=5) == '192.0.2.1'
            stop.set()
            thread.join(5)
        assert not thread.is_alive()
        assert source.call_count >= 3
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) >= 2
        assert "down" in errors[0].getMessage()

    def test_returns_after_failed_poll(self):
        """Test run returns promptly after stop even if every poll fails"""
        poller, source = make_poller([IPDetectionError("down")],
                                     interval='0.5')
        stop = threading.Event()
        thread = threading.Thread(target=poller.run, args=(stop,))
        thread.start()
        while source.call_count == 0:
            time.sleep(0.01)

        stopped_at = time.monotonic()
        stop.set()
        thread.join(5)
        assert not thread.is_alive()
        assert time.monotonic() - stopped_at < 0.5 + 0.5


class TestStartStop:

    def test_start_stop(self):
        poller, source = make_poller(['192.0.2.1'], interval='3600')
        sub = poller.channel()
        poller.start()
        assert sub.get(timeout=5) == '192.0.2.1'
        poller.stop()
        assert poller._thread is None
        assert source.call_count == 1

    def test_start_twice(self, caplog):
        poller, source = make_poller(['192.0.2.1'], interval='3600')
        sub = poller.channel()
        poller.start()
        poller.start()
        sub.get(timeout=5)
        poller.stop()
        assert source.call_count == 1
        assert "Already started" in caplog.text

    def test_stop_without_start(self):
        """Test stop does not raise when never started"""
        poller, _ = make_poller(['192.0.2.1'])
        poller.stop()

    def test_subscribe_while_running(self):
        """Test registering subscribers while broadcasts happen is safe"""
        poller, _ = make_poller(['192.0.2.1'], interval='0.001')
        poller.start()
        subs = []
        for _ in range(50):
            subs.append(poller.channel())
            time.sleep(0.001)
        for sub in subs:
            assert sub.get(timeout=5) == '192.0.2.1'
        poller.stop()
