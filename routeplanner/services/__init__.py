from .address import AddressResolver, AddressSuggester
from .collection import RouteCollectionManager
from .debounce import Debouncer
from .directions import RouteFetcher
from .drag import DragRerouteController, DragState
from .events import EventBus
from .geocode_cache import GeocodeCache
from .planner import RoutePlanner, build_planner
from .snapping import SnapToRoadService

__all__ = [
    "AddressResolver",
    "AddressSuggester",
    "Debouncer",
    "DragRerouteController",
    "DragState",
    "EventBus",
    "GeocodeCache",
    "RouteCollectionManager",
    "RouteFetcher",
    "RoutePlanner",
    "SnapToRoadService",
    "build_planner",
]
