# Due-task alerting: state planner, channels, store contract and the tick engine.

from .channels import ChannelAdapter, build_channels
from .engine import AlertEngine, TickReport
from .state import AlertPhase, AlertPolicy, ChannelOwner, TaskAlertView, classify, plan_tick
from .store import SqlAlchemyTaskStore

__all__ = [
    "AlertEngine",
    "AlertPhase",
    "AlertPolicy",
    "ChannelAdapter",
    "ChannelOwner",
    "SqlAlchemyTaskStore",
    "TaskAlertView",
    "TickReport",
    "build_channels",
    "classify",
    "plan_tick",
]
