"""Reachability monitoring: flag classification and change notifications."""

from netreach.reachability.classifier import classify
from netreach.reachability.dispatch import AsyncioContext, DeliveryContext, DispatchQueue, MainLoop
from netreach.reachability.errors import (
    AddressTargetError,
    CallbackRegistrationError,
    DispatchQueueBindingError,
    HostnameTargetError,
    NotifierError,
    ReachabilityError,
    TargetCreationError,
)
from netreach.reachability.facility import (
    MockReachabilityFacility,
    ReachabilityFacility,
    SystemReachabilityFacility,
    TargetHandle,
    TargetKind,
    get_facility,
)
from netreach.reachability.flags import ReachabilityFlags
from netreach.reachability.monitor import Reachability
from netreach.reachability.notifier import Notifier, NotifierState
from netreach.reachability.publisher import StatusPublisher, Subscription
from netreach.reachability.radio import (
    ModemManagerRadioTechnology,
    RadioTechnology,
    RadioTechnologyProvider,
    StaticRadioTechnology,
)
from netreach.reachability.status import NetworkStatus

__all__ = [
    "Reachability",
    "NetworkStatus",
    "ReachabilityFlags",
    "classify",
    "RadioTechnology",
    "RadioTechnologyProvider",
    "StaticRadioTechnology",
    "ModemManagerRadioTechnology",
    "ReachabilityFacility",
    "MockReachabilityFacility",
    "SystemReachabilityFacility",
    "TargetHandle",
    "TargetKind",
    "get_facility",
    "Notifier",
    "NotifierState",
    "StatusPublisher",
    "Subscription",
    "DeliveryContext",
    "DispatchQueue",
    "MainLoop",
    "AsyncioContext",
    "ReachabilityError",
    "TargetCreationError",
    "AddressTargetError",
    "HostnameTargetError",
    "NotifierError",
    "CallbackRegistrationError",
    "DispatchQueueBindingError",
]
