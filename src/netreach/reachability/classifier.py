"""Classification of reachability flags into a NetworkStatus."""

from typing import Callable, Optional

from netreach.reachability.flags import ReachabilityFlags
from netreach.reachability.radio import RadioTechnology
from netreach.reachability.status import NetworkStatus

RadioLookup = Callable[[], Optional[RadioTechnology]]

_GENERATIONS = {
    RadioTechnology.GPRS: NetworkStatus.CELLULAR_2G,
    RadioTechnology.EDGE: NetworkStatus.CELLULAR_2G,
    RadioTechnology.CDMA1X: NetworkStatus.CELLULAR_2G,
    RadioTechnology.WCDMA: NetworkStatus.CELLULAR_3G,
    RadioTechnology.HSDPA: NetworkStatus.CELLULAR_3G,
    RadioTechnology.HSUPA: NetworkStatus.CELLULAR_3G,
    RadioTechnology.EVDO_REV0: NetworkStatus.CELLULAR_3G,
    RadioTechnology.EVDO_REVA: NetworkStatus.CELLULAR_3G,
    RadioTechnology.EVDO_REVB: NetworkStatus.CELLULAR_3G,
    RadioTechnology.EHRPD: NetworkStatus.CELLULAR_3G,
    RadioTechnology.LTE: NetworkStatus.CELLULAR_4G,
}

_VETO = ReachabilityFlags.CONNECTION_REQUIRED | ReachabilityFlags.TRANSIENT_CONNECTION


def generation_for(technology: Optional[RadioTechnology]) -> NetworkStatus:
    """Map a radio technology to its cellular generation.

    Args:
        technology: Active radio technology, or None

    Returns:
        CELLULAR_2G/3G/4G, or UNKNOWN for anything unrecognised
    """
    if technology is None:
        return NetworkStatus.UNKNOWN
    return _GENERATIONS.get(technology, NetworkStatus.UNKNOWN)


def classify(
    flags: ReachabilityFlags,
    is_mobile_device: bool = False,
    radio_lookup: Optional[RadioLookup] = None,
) -> NetworkStatus:
    """Classify a flag snapshot.

    Rules are applied in order and the first match wins: the reachable bit,
    then the combined connection-required/transient veto, then the path type,
    and the radio lookup last. The lookup is only called for a reachable
    cellular path on a mobile device.

    Args:
        flags: Flag snapshot to classify
        is_mobile_device: Whether this device has a cellular radio
        radio_lookup: Returns the active radio technology

    Returns:
        Exactly one NetworkStatus
    """
    if not flags & ReachabilityFlags.REACHABLE:
        return NetworkStatus.NOT_REACHABLE

    # Both bits together: a transient link that still needs to be set up
    if flags & _VETO == _VETO:
        return NetworkStatus.NOT_REACHABLE

    if not flags & ReachabilityFlags.IS_CELLULAR:
        return NetworkStatus.WIFI

    if is_mobile_device:
        technology = radio_lookup() if radio_lookup is not None else None
        return generation_for(technology)

    return NetworkStatus.NOT_REACHABLE
