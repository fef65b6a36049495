# nodes.py

from typing import List

from .models import NodesInfo
from .output import green, red


def format_node_list(info: NodesInfo, status: bool = False) -> List[str]:
    """One line per node; with ``status`` each name is padded with dots and tagged online/offline."""
    if not status:
        return [node.display_name for node in info.computer]
    lines = []
    for node in info.computer:
        state = red("offline") if node.offline else green("online")
        lines.append(f"{node.display_name:.<40}{state}")
    return lines


def format_executors(info: NodesInfo, total: bool = False, busy: bool = False) -> List[str]:
    """Executor counts; both are shown unless exactly one of the flags is set."""
    show_total = total or not busy
    show_busy = busy or not total
    lines = []
    if show_total:
        lines.append(f"Total number of executors: {info.total_executors}")
    if show_busy:
        lines.append(f"Busy executors: {info.busy_executors}")
    return lines
