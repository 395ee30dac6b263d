"""Shared pytest fixtures for all tests."""

from typing import Iterator, List

import pytest

from netreach.reachability import (
    MainLoop,
    MockReachabilityFacility,
    NetworkStatus,
    Reachability,
    StaticRadioTechnology,
    get_facility,
)


@pytest.fixture
def mock_facility() -> MockReachabilityFacility:
    """Provide a MockReachabilityFacility with no reachable targets.

    Returns:
        MockReachabilityFacility instance
    """
    facility = get_facility(mock=True)
    assert isinstance(facility, MockReachabilityFacility)
    return facility


@pytest.fixture
def main_loop() -> MainLoop:
    """Provide a delivery context drained by the test thread."""
    return MainLoop()


@pytest.fixture
def radio() -> StaticRadioTechnology:
    """Provide a radio provider reporting no technology."""
    return StaticRadioTechnology()


@pytest.fixture
def status_events() -> List[NetworkStatus]:
    """Provide a list to collect published statuses."""
    return []


@pytest.fixture
def reachability(
    mock_facility: MockReachabilityFacility,
    main_loop: MainLoop,
    radio: StaticRadioTechnology,
) -> Iterator[Reachability]:
    """Provide a default-route monitor on a mobile device, delivering to main_loop."""
    monitor = Reachability.default_route(
        facility=mock_facility,
        is_mobile_device=True,
        radio=radio,
        delivery=main_loop,
    )
    yield monitor
    monitor.close()
