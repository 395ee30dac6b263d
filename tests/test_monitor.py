"""Tests for the Reachability monitor."""

import socket
import struct
import threading
from typing import List

import pytest

from netreach.reachability import (
    AddressTargetError,
    CallbackRegistrationError,
    DispatchQueue,
    HostnameTargetError,
    MainLoop,
    MockReachabilityFacility,
    NetworkStatus,
    RadioTechnology,
    Reachability,
    ReachabilityFlags,
    StaticRadioTechnology,
    TargetKind,
)
from netreach.reachability.facility import encode_sockaddr
from tests.test_harness import (
    CELLULAR_FLAGS,
    drain_until,
    settle,
    simulate_cellular,
    simulate_offline,
    simulate_wifi,
    wait_until,
)


class TestConstruction:
    """Test creating monitors for each kind of target."""

    def test_default_route(self, reachability: Reachability) -> None:
        """Test the default-route monitor."""
        assert reachability.target is not None
        assert reachability.target.kind is TargetKind.DEFAULT_ROUTE
        assert reachability.is_mobile_device
        assert not reachability.is_watching

    def test_with_hostname(self, mock_facility: MockReachabilityFacility) -> None:
        """Test a hostname monitor."""
        with Reachability.with_hostname(
            "example.com", facility=mock_facility, is_mobile_device=False
        ) as monitor:
            assert monitor.target is not None
            assert monitor.target.kind is TargetKind.HOSTNAME
            assert monitor.target.hostname == "example.com"
            assert "example.com" in repr(monitor)

    def test_with_address(self, mock_facility: MockReachabilityFacility) -> None:
        """Test address monitors from text and raw socket addresses."""
        with Reachability.with_address(
            "192.168.1.1", facility=mock_facility, is_mobile_device=False
        ) as monitor:
            assert monitor.target is not None
            assert monitor.target.kind is TargetKind.ADDRESS

        with Reachability.with_address(
            encode_sockaddr("10.0.0.1", port=80), facility=mock_facility, is_mobile_device=False
        ) as monitor:
            assert monitor.target is not None
            assert monitor.target.kind is TargetKind.ADDRESS
            assert str(monitor.target.address) == "10.0.0.1"

    def test_with_raw_sockaddr_in(self, mock_facility: MockReachabilityFacility) -> None:
        """Test a sockaddr_in laid out by hand, family in host byte order."""
        data = (
            struct.pack("=H", socket.AF_INET)
            + struct.pack("!H", 0)
            + socket.inet_aton("192.0.2.1")
            + bytes(8)
        )

        with Reachability.with_address(
            data, facility=mock_facility, is_mobile_device=False
        ) as monitor:
            assert monitor.target is not None
            assert str(monitor.target.address) == "192.0.2.1"

    def test_zeroed_sockaddr_is_default_route(
        self, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that a zeroed AF_INET socket address monitors the default route."""
        with Reachability.with_address(
            encode_sockaddr("0.0.0.0"), facility=mock_facility, is_mobile_device=False
        ) as monitor:
            assert monitor.target is not None
            assert monitor.target.kind is TargetKind.DEFAULT_ROUTE

    @pytest.mark.parametrize("data", [bytes(4), bytes(16), b"\x02"])
    def test_unrecognised_address_bytes(
        self, mock_facility: MockReachabilityFacility, data: bytes
    ) -> None:
        """Test that bytes that are not an AF_INET/AF_INET6 socket address are rejected."""
        with pytest.raises(AddressTargetError) as exc_info:
            Reachability.with_address(data, facility=mock_facility)

        assert exc_info.value.address == data
        assert mock_facility.target_count == 0

    def test_invalid_hostname(self, mock_facility: MockReachabilityFacility) -> None:
        """Test that an invalid hostname raises the hostname error."""
        with pytest.raises(HostnameTargetError) as exc_info:
            Reachability.with_hostname("bad..host", facility=mock_facility)

        assert exc_info.value.hostname == "bad..host"
        assert mock_facility.target_count == 0

    def test_invalid_address(self, mock_facility: MockReachabilityFacility) -> None:
        """Test that a malformed address raises the address error."""
        with pytest.raises(AddressTargetError) as exc_info:
            Reachability.with_address("300.1.1.1", facility=mock_facility)

        assert exc_info.value.address == "300.1.1.1"

    def test_facility_refuses_default_route(
        self, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that a facility failure surfaces as a target creation error."""
        mock_facility.fail_create = True

        with pytest.raises(AddressTargetError):
            Reachability.default_route(facility=mock_facility)

    def test_independent_monitors(self, mock_facility: MockReachabilityFacility) -> None:
        """Test that each monitor owns its own target and subscribers."""
        first = Reachability.with_hostname(
            "a.example", facility=mock_facility, is_mobile_device=False
        )
        second = Reachability.with_hostname(
            "b.example", facility=mock_facility, is_mobile_device=False
        )

        first.subscribe(lambda status: None)

        assert first.target != second.target
        assert mock_facility.target_count == 2
        first.close()
        assert mock_facility.target_count == 1
        assert second.current_status() == NetworkStatus.NOT_REACHABLE
        second.close()


class TestCurrentStatus:
    """Test on-demand status queries."""

    def test_no_network_path(self, reachability: Reachability) -> None:
        """Test that a default route with no path is not reachable."""
        assert reachability.current_flags() == ReachabilityFlags.NONE
        assert reachability.current_status() == NetworkStatus.NOT_REACHABLE

    def test_wifi(
        self, reachability: Reachability, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that a reachable non-cellular path is Wi-Fi."""
        mock_facility.set_flags(ReachabilityFlags.REACHABLE)
        assert reachability.current_status() == NetworkStatus.WIFI

    def test_cellular_lte(
        self,
        reachability: Reachability,
        mock_facility: MockReachabilityFacility,
        radio: StaticRadioTechnology,
    ) -> None:
        """Test that LTE on a mobile device is 4G."""
        radio.set_technology(RadioTechnology.LTE)
        simulate_cellular(mock_facility)
        assert reachability.current_status() == NetworkStatus.CELLULAR_4G

    def test_cellular_generation_follows_radio(
        self,
        reachability: Reachability,
        mock_facility: MockReachabilityFacility,
        radio: StaticRadioTechnology,
    ) -> None:
        """Test that the radio technology is consulted on every query."""
        simulate_cellular(mock_facility)

        radio.set_technology(RadioTechnology.GPRS)
        assert reachability.current_status() == NetworkStatus.CELLULAR_2G
        radio.set_technology(RadioTechnology.WCDMA)
        assert reachability.current_status() == NetworkStatus.CELLULAR_3G
        radio.set_technology(None)
        assert reachability.current_status() == NetworkStatus.UNKNOWN

    def test_cellular_without_radio_provider(
        self, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test a mobile device with no way to read the radio technology."""
        with Reachability.default_route(
            facility=mock_facility, is_mobile_device=True, radio=None
        ) as monitor:
            mock_facility.set_flags(CELLULAR_FLAGS)
            assert monitor.current_status() == NetworkStatus.UNKNOWN

    def test_cellular_on_desktop(self, mock_facility: MockReachabilityFacility) -> None:
        """Test a cellular path reported to a non-mobile device."""
        with Reachability.default_route(
            facility=mock_facility,
            is_mobile_device=False,
            radio=StaticRadioTechnology(RadioTechnology.LTE),
        ) as monitor:
            mock_facility.set_flags(CELLULAR_FLAGS)
            assert monitor.current_status() == NetworkStatus.NOT_REACHABLE

    def test_unreadable_flags(
        self, reachability: Reachability, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that unreadable flags are reported as not reachable."""
        simulate_wifi(mock_facility)
        mock_facility.fail_get_flags = True

        assert reachability.current_flags() is None
        assert reachability.current_status() == NetworkStatus.NOT_REACHABLE

    def test_query_while_watching(
        self, reachability: Reachability, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that queries work while notifications are active."""
        reachability.start_watching()
        simulate_wifi(mock_facility)
        assert reachability.current_status() == NetworkStatus.WIFI


class TestWatching:
    """Test change notifications through the monitor."""

    def test_changes_published_in_order(
        self,
        reachability: Reachability,
        mock_facility: MockReachabilityFacility,
        main_loop: MainLoop,
        radio: StaticRadioTechnology,
        status_events: List[NetworkStatus],
    ) -> None:
        """Test that observers see every change in order."""
        radio.set_technology(RadioTechnology.HSDPA)
        reachability.subscribe(status_events.append)
        reachability.start_watching()

        simulate_wifi(mock_facility)
        drain_until(main_loop, status_events, 1)
        simulate_cellular(mock_facility)
        drain_until(main_loop, status_events, 2)
        simulate_offline(mock_facility)
        drain_until(main_loop, status_events, 3)

        assert status_events == [
            NetworkStatus.WIFI,
            NetworkStatus.CELLULAR_3G,
            NetworkStatus.NOT_REACHABLE,
        ]

    def test_observers_run_on_delivery_context(
        self,
        reachability: Reachability,
        mock_facility: MockReachabilityFacility,
        main_loop: MainLoop,
        status_events: List[NetworkStatus],
    ) -> None:
        """Test that observers are only called when the delivery context runs."""
        threads: List[str] = []

        def observer(status: NetworkStatus) -> None:
            threads.append(threading.current_thread().name)
            status_events.append(status)

        reachability.subscribe(observer)
        reachability.start_watching()
        simulate_wifi(mock_facility)

        assert wait_until(lambda: main_loop.pending > 0)
        assert status_events == []
        drain_until(main_loop, status_events, 1)

        assert threads == [threading.current_thread().name]

    def test_start_watching_twice(
        self, reachability: Reachability, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that a second start keeps exactly one registration."""
        reachability.start_watching()
        reachability.start_watching()

        assert reachability.is_watching
        assert reachability.target is not None
        assert mock_facility.get_target_state(reachability.target)["registrations"] == 1

    def test_stop_watching_twice(self, reachability: Reachability) -> None:
        """Test that stopping twice is safe."""
        reachability.start_watching()
        reachability.stop_watching()
        reachability.stop_watching()

        assert not reachability.is_watching

    def test_no_events_after_stop(
        self,
        reachability: Reachability,
        mock_facility: MockReachabilityFacility,
        main_loop: MainLoop,
        status_events: List[NetworkStatus],
    ) -> None:
        """Test that nothing is published after stop, even if the facility fires."""
        reachability.subscribe(status_events.append)
        reachability.start_watching()
        reachability.stop_watching()

        simulate_wifi(mock_facility)
        mock_facility.set_flags(ReachabilityFlags.REACHABLE, force=True)
        settle(main_loop)

        assert status_events == []

    def test_unsubscribe(
        self,
        reachability: Reachability,
        mock_facility: MockReachabilityFacility,
        main_loop: MainLoop,
        status_events: List[NetworkStatus],
    ) -> None:
        """Test that an unsubscribed observer receives nothing more."""
        removed: List[NetworkStatus] = []
        subscription = reachability.subscribe(removed.append)
        reachability.subscribe(status_events.append)
        reachability.start_watching()

        simulate_wifi(mock_facility)
        drain_until(main_loop, status_events, 1)
        reachability.unsubscribe(subscription)
        reachability.unsubscribe(subscription)
        simulate_offline(mock_facility)
        drain_until(main_loop, status_events, 2)

        assert removed == [NetworkStatus.WIFI]
        assert status_events == [NetworkStatus.WIFI, NetworkStatus.NOT_REACHABLE]

    def test_registration_failure_leaves_monitor_usable(
        self, reachability: Reachability, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that a failed start raises and queries keep working."""
        mock_facility.fail_set_callback = True

        with pytest.raises(CallbackRegistrationError, match="Unable to register callback"):
            reachability.start_watching()

        assert not reachability.is_watching
        simulate_wifi(mock_facility)
        assert reachability.current_status() == NetworkStatus.WIFI

        mock_facility.fail_set_callback = False
        reachability.start_watching()
        assert reachability.is_watching

    def test_default_delivery_thread(
        self, mock_facility: MockReachabilityFacility, status_events: List[NetworkStatus]
    ) -> None:
        """Test the monitor's own delivery thread when none is given."""
        threads: List[str] = []

        def observer(status: NetworkStatus) -> None:
            threads.append(threading.current_thread().name)
            status_events.append(status)

        with Reachability.default_route(facility=mock_facility, is_mobile_device=False) as monitor:
            monitor.subscribe(observer)
            monitor.start_watching()
            simulate_wifi(mock_facility)
            assert wait_until(lambda: status_events == [NetworkStatus.WIFI])

        assert threads == ["ReachabilityDelivery"]

    def test_shared_delivery_queue(
        self, mock_facility: MockReachabilityFacility, status_events: List[NetworkStatus]
    ) -> None:
        """Test delivering to a caller-owned dispatch queue."""
        delivery = DispatchQueue("AppQueue")
        threads: List[str] = []

        def observer(status: NetworkStatus) -> None:
            threads.append(threading.current_thread().name)
            status_events.append(status)

        with Reachability.default_route(
            facility=mock_facility, is_mobile_device=False, delivery=delivery
        ) as monitor:
            monitor.subscribe(observer)
            monitor.start_watching()
            simulate_wifi(mock_facility)
            assert wait_until(lambda: status_events == [NetworkStatus.WIFI])

        assert not delivery.is_closed
        delivery.close()
        assert threads == ["AppQueue"]


class TestClose:
    """Test releasing the monitor."""

    def test_close_releases_target(
        self, reachability: Reachability, mock_facility: MockReachabilityFacility
    ) -> None:
        """Test that close stops watching and releases the target."""
        reachability.start_watching()
        reachability.close()

        assert reachability.target is None
        assert not reachability.is_watching
        assert mock_facility.target_count == 0
        assert "closed" in repr(reachability)

    def test_close_twice(self, reachability: Reachability) -> None:
        """Test that close is idempotent."""
        reachability.close()
        reachability.close()
        assert reachability.target is None

    def test_operations_after_close(self, reachability: Reachability) -> None:
        """Test that a closed monitor answers queries without failing."""
        reachability.close()

        assert reachability.current_flags() is None
        assert reachability.current_status() == NetworkStatus.NOT_REACHABLE
        reachability.start_watching()
        assert not reachability.is_watching
        reachability.stop_watching()

    def test_context_manager(self, mock_facility: MockReachabilityFacility) -> None:
        """Test that leaving the with block closes the monitor."""
        with Reachability.default_route(facility=mock_facility, is_mobile_device=False) as monitor:
            monitor.start_watching()
            assert mock_facility.target_count == 1

        assert monitor.target is None
        assert mock_facility.target_count == 0
